"""
Pytest configuration and fixtures for medfit tests.
"""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def mediation_data(rng):
    """Simulated X -> M -> Y data with a=0.5, b=0.4, c'=0.3."""
    n = 200
    x = rng.normal(size=n)
    m = 0.5 * x + rng.normal(size=n)
    y = 0.3 * x + 0.4 * m + rng.normal(size=n)
    return pd.DataFrame({"X": x, "M": m, "Y": y, "C": rng.normal(size=n)})


@pytest.fixture
def serial_data(rng):
    """Simulated X -> M1 -> M2 -> Y data with a=0.5, d=0.4, b=0.3, c'=0.2."""
    n = 200
    x = rng.normal(size=n)
    m1 = 0.5 * x + rng.normal(size=n)
    m2 = 0.4 * m1 + 0.1 * x + rng.normal(size=n)
    y = 0.2 * x + 0.3 * m2 + rng.normal(size=n)
    return pd.DataFrame({"X": x, "M1": m1, "M2": m2, "Y": y})


@pytest.fixture
def structure_kwargs():
    """Valid keyword arguments for a MediationStructure named like an extractor would."""
    names = ["m_intercept", "m_X", "y_intercept", "y_X", "y_M"]
    return dict(
        a_path=0.5,
        b_path=0.3,
        c_prime=0.2,
        estimates=pd.Series([0.1, 0.5, 0.2, 0.2, 0.3], index=names),
        covariance=np.diag([0.01] * 5),
        treatment_name="X",
        mediator_name="M",
        outcome_name="Y",
        n_obs=100,
        sigma_mediator=1.0,
        sigma_outcome=1.0,
        mediator_predictors=("X",),
        outcome_predictors=("X", "M"),
        source_label="test",
    )


@pytest.fixture
def simple_structure(structure_kwargs):
    from medfit import MediationStructure

    return MediationStructure(**structure_kwargs)


@pytest.fixture
def serial_kwargs():
    """Valid keyword arguments for a two-mediator SerialMediationStructure."""
    names = ["m1_intercept", "m1_X", "m2_intercept", "m2_M1", "y_intercept", "y_X", "y_M2"]
    return dict(
        a_path=0.5,
        d_path=(0.4,),
        b_path=0.3,
        c_prime=0.2,
        estimates=pd.Series([0.0, 0.5, 0.0, 0.4, 0.0, 0.2, 0.3], index=names),
        covariance=np.diag([0.01] * 7),
        treatment_name="X",
        mediator_names=("M1", "M2"),
        outcome_name="Y",
        n_obs=100,
        sigma_mediators=(1.0, 1.0),
        sigma_outcome=1.0,
        mediator_predictors=(("X",), ("X", "M1")),
        outcome_predictors=("X", "M2"),
    )


@pytest.fixture
def serial_structure(serial_kwargs):
    from medfit import SerialMediationStructure

    return SerialMediationStructure(**serial_kwargs)


@pytest.fixture
def worked_structure():
    """Unnamed three-parameter structure with diagonal covariance 0.01."""
    from medfit import MediationStructure

    return MediationStructure(
        a_path=0.5,
        b_path=0.3,
        c_prime=0.2,
        estimates=[0.5, 0.3, 0.2],
        covariance=np.diag([0.01, 0.01, 0.01]),
        treatment_name="X",
        mediator_name="M",
        outcome_name="Y",
        n_obs=200,
    )
