from rosterguard.errors import ConfigError, DataError, RosterGuardError, ValidationError


def test_error_string_carries_source_and_action():
    """
    @brief
    Structured errors render type, message, source and suggested action.
    """
    err = DataError("Dataset file not found: x.json", source="DatasetLoader", suggested_action="Fix it")

    assert str(err) == (
        "[DataError] Dataset file not found: x.json (source=DatasetLoader) | action: Fix it"
    )
    assert isinstance(err, RosterGuardError)


def test_error_defaults_and_dict_view():
    err = ConfigError("bad")

    data = err.to_dict()

    assert str(err) == "[ConfigError] bad (source=unknown)"
    assert data["type"] == "ConfigError"
    assert data["message"] == "bad"
    assert data["suggested_action"] is None
    assert data["raised_at"].endswith("+00:00")


def test_hierarchy():
    assert issubclass(ValidationError, RosterGuardError)
    assert not issubclass(ValidationError, DataError)
