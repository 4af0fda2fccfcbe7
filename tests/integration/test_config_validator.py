from core.config.validator import ConfigurationValidator, validate_startup_configuration
from tests.fixtures.ledger_fixtures import seed_reference_data


async def test_validation_passes_with_cash_instrument(test_settings, db_manager, seed):
    validator = ConfigurationValidator(test_settings, db_manager)

    assert await validator.validate_all() is True
    summary = validator.get_validation_summary()
    assert summary["is_valid"] is True
    assert summary["errors"] == 0


async def test_validation_fails_without_cash_instrument(test_settings, db_manager):
    await seed_reference_data(db_manager, with_cash_instrument=False)
    validator = ConfigurationValidator(test_settings, db_manager)

    assert await validator.validate_all() is False
    summary = validator.get_validation_summary()
    assert [e["component"] for e in summary["error_details"]] == ["Ledger"]
    assert "MONEDA" in summary["error_details"][0]["message"]


async def test_first_position_pricing_is_a_warning(test_settings, db_manager, seed):
    settings = test_settings.model_copy(update={
        "ledger": test_settings.ledger.model_copy(update={"valuation_price_source": "first_position"})
    })

    assert await validate_startup_configuration(settings, db_manager) is True

    validator = ConfigurationValidator(settings, db_manager)
    await validator.validate_all()
    assert validator.get_validation_summary()["warnings"] == 1
