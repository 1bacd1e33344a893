import inspect

import backspin


def test_public_api_symbol_list_is_explicit_and_stable() -> None:
    assert backspin.__all__ == [
        "__version__",
        "CURRENT_FORMAT_VERSION",
        "MODE_ENV_VAR",
        "Mode",
        "FilterScope",
        "SnapshotFilter",
        "MatcherConfig",
        "Configuration",
        "CommandType",
        "Snapshot",
        "Matcher",
        "CommandDiff",
        "Record",
        "BackspinResult",
        "BackspinError",
        "ConfigurationError",
        "MatcherConfigError",
        "RecordError",
        "RecordNotFoundError",
        "RecordFormatError",
        "CommandExecutionError",
        "VerificationError",
        "run",
        "capture",
        "configure",
        "get_configuration",
        "reset_configuration",
        "use_configuration",
        "default_credential_patterns",
    ]
    for name in backspin.__all__:
        assert hasattr(backspin, name)


def test_public_api_function_signatures_and_annotations() -> None:
    expected_parameter_order = {
        "run": (
            "command",
            "name",
            "env",
            "mode",
            "matcher",
            "filter",
            "filter_on",
            "block",
            "config",
        ),
        "capture": ("name", "block", "mode", "matcher", "filter", "filter_on", "config"),
    }

    for name, parameters in expected_parameter_order.items():
        function = getattr(backspin, name)
        signature = inspect.signature(function)
        assert tuple(signature.parameters.keys()) == parameters
        assert "return" in function.__annotations__
        assert function.__doc__ is not None
        assert function.__doc__.strip() != ""

        positional = 1 if name == "run" else 2
        for index, parameter in enumerate(signature.parameters.values()):
            if index < positional:
                assert parameter.kind is inspect.Parameter.POSITIONAL_OR_KEYWORD
            else:
                assert parameter.kind is inspect.Parameter.KEYWORD_ONLY


def test_error_hierarchy() -> None:
    assert issubclass(backspin.ConfigurationError, ValueError)
    assert issubclass(backspin.MatcherConfigError, backspin.ConfigurationError)
    assert issubclass(backspin.RecordNotFoundError, backspin.RecordError)
    assert issubclass(backspin.RecordFormatError, backspin.RecordError)
    assert issubclass(backspin.VerificationError, AssertionError)
    for error in (
        backspin.ConfigurationError,
        backspin.RecordError,
        backspin.CommandExecutionError,
        backspin.VerificationError,
    ):
        assert issubclass(error, backspin.BackspinError)


def test_command_type_wire_tags() -> None:
    assert backspin.CommandType.PROCESS_CAPTURE.value == "Open3::Capture3"
    assert backspin.CommandType.BLOCK_CAPTURE.value == "Backspin::Capturer"
    assert backspin.CURRENT_FORMAT_VERSION == "4.1"
