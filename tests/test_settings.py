# -*- coding: utf-8 -*-
import json

import pytest

from gnms import (
    ConfigurationError,
    Discretization,
    GNMSSettings,
    IntegratorType,
    LineSearchSettings,
    load_settings,
)


class TestDefaults:
    def test_defaults(self):
        s = GNMSSettings()
        assert s.dt == 0.01
        assert s.dt_sim == 0.01
        assert s.discretization == Discretization.FORWARD_EULER
        assert s.integrator == IntegratorType.RK4
        assert s.max_iterations == 100
        assert s.min_cost_improvement == 1e-4
        assert s.epsilon == 1e-5
        assert s.thread_count == 1
        assert s.line_search.active
        assert s.line_search.max_iterations == 10
        s.validate()

    def test_derived_quantities(self):
        s = GNMSSettings(dt=0.01, dt_sim=0.0025)
        assert s.number_of_steps(3.0) == 300
        assert s.k_sim() == 4
        with pytest.raises(ConfigurationError):
            s.number_of_steps(0.001)

    def test_alphas(self):
        ls = LineSearchSettings(max_iterations=3, alpha_0=1.0, n_alpha=0.5)
        assert ls.alphas() == (1.0, 0.5, 0.25)
        ls.active = False
        assert ls.alphas() == (1.0,)

    def test_copy_is_deep(self):
        s = GNMSSettings()
        c = s.copy()
        c.line_search.max_iterations = 2
        assert s.line_search.max_iterations == 10


class TestValidation:
    @pytest.mark.parametrize("field, value", [
        ("dt", 0.0),
        ("dt", -0.1),
        ("dt_sim", 0.02),  # larger than dt
        ("max_iterations", 0),
        ("min_cost_improvement", -1.0),
        ("epsilon", -1e-3),
        ("thread_count", 0),
        ("discretization", "tustin"),
    ])
    def test_invalid_values(self, field, value):
        s = GNMSSettings()
        setattr(s, field, value)
        with pytest.raises(ConfigurationError):
            s.validate()

    @pytest.mark.parametrize("field, value", [
        ("max_iterations", 0),
        ("alpha_0", 0.0),
        ("n_alpha", 1.0),
    ])
    def test_invalid_line_search(self, field, value):
        s = GNMSSettings()
        setattr(s.line_search, field, value)
        with pytest.raises(ConfigurationError):
            s.validate()


class TestSerialization:
    def test_dict_round_trip(self):
        s = GNMSSettings(discretization=Discretization.TUSTIN, thread_count=4)
        s.line_search.n_alpha = 0.7
        d = s.to_dict()
        assert d["discretization"] == "TUSTIN"
        assert d["line_search"]["n_alpha"] == 0.7
        assert GNMSSettings.from_dict(d) == s

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigurationError):
            GNMSSettings.from_dict({"dt": 0.01, "step_size": 0.1})

    def test_unknown_enum_rejected(self):
        with pytest.raises(ConfigurationError):
            GNMSSettings.from_dict({"discretization": "midpoint"})

    def test_load_settings(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "dt": 0.02,
            "dt_sim": 0.005,
            "discretization": "backward_euler",
            "line_search": {"active": False},
        }))
        s = load_settings(path)
        assert s.dt == 0.02
        assert s.k_sim() == 4
        assert s.discretization == Discretization.BACKWARD_EULER
        assert s.line_search.alphas() == (1.0,)

    def test_load_settings_validates(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"thread_count": 0}))
        with pytest.raises(ConfigurationError):
            load_settings(path)
