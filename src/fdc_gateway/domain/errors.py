"""Error types raised by the gateway core."""

from collections.abc import Iterable

from fdc_gateway.domain.nutrients import NutrientKey


class UpstreamError(Exception):
    """Failure talking to FoodData Central, classified for retry decisions."""

    def __init__(  # noqa: PLR0913
        self,
        message: str,
        *,
        status: int | None = None,
        retryable: bool = False,
        suggested_delay_ms: int | None = None,
        raw_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self._message = message
        self._status = status
        self._retryable = retryable
        self._suggested_delay_ms = suggested_delay_ms
        self._raw_body = raw_body

    @property
    def message(self) -> str:
        return self._message

    @property
    def status(self) -> int | None:
        return self._status

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def suggested_delay_ms(self) -> int | None:
        """Upstream wait hint; informational only."""
        return self._suggested_delay_ms

    @property
    def raw_body(self) -> str | None:
        return self._raw_body

    @property
    def is_not_found(self) -> bool:
        return self._status == 404


class CursorError(ValueError):
    """Raised for any cursor that cannot be decoded for a tool."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Invalid cursor for {tool_name}.")
        self.tool_name = tool_name


class ResolutionIncompleteError(Exception):
    """Raised when a record lacks nutrients its dataset policy requires."""

    def __init__(
        self,
        fdc_id: int,
        data_type: str | None,
        missing: Iterable[NutrientKey],
    ) -> None:
        self.fdc_id = fdc_id
        self.data_type = data_type
        self.missing = tuple(missing)
        fields = ", ".join(key.value for key in self.missing)
        dataset = data_type or "Unclassified"
        super().__init__(
            f"{dataset} record {fdc_id} is missing required nutrients: {fields}. "
            "Choose a different record or compute these values manually."
        )
