"""
Application factory configuration checks.
"""

import pytest

from backoffice import create_app


@pytest.mark.parametrize("policy", ["refund", "", "REJECT"])
def test_unknown_overpayment_policy_fails_at_startup(policy):
    with pytest.raises(ValueError, match="DEBT_OVERPAYMENT_POLICY"):
        create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "DEBT_OVERPAYMENT_POLICY": policy,
        })


def test_configured_policy_reaches_the_app(app):
    assert app.config["DEBT_OVERPAYMENT_POLICY"] == "reject"
