from cicero_wa.services.result import Result


class TestResult:
    def test_success(self):
        result = Result.success("69040249")
        assert result.valid is True
        assert result.value == "69040249"
        assert result.error == ""
        assert result.error_code is None

    def test_failure(self):
        result = Result.failure("bad", "not_numeric")
        assert result.valid is False
        assert result.value is None
        assert result.error_code == "not_numeric"

    def test_unwrap_or(self):
        assert Result.success(1).unwrap_or(0) == 1
        assert Result.failure("x").unwrap_or(0) == 0
