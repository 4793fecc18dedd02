from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple


def clean_params(params: Optional[Mapping[str, Any]]) -> Tuple[Tuple[str, str], ...]:
    """
    Normalise query parameters: None and "" values are dropped, everything
    else is stringified (booleans as true/false). Order is preserved.
    """
    if not params:
        return ()
    cleaned = []
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned.append((key, str(value)))
    return tuple(cleaned)


@dataclass(frozen=True)
class RequestDescriptor:
    """
    One logical request. Built once by a client verb, sent once, and replayed
    verbatim at most once more after a token refresh.
    """

    method: str
    endpoint: str
    params: Tuple[Tuple[str, str], ...] = ()
    body: Any = None
    headers: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def build(
        cls,
        method: str,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "RequestDescriptor":
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return cls(
            method=method.upper(),
            endpoint=endpoint,
            params=clean_params(params),
            body=body,
            headers=tuple((headers or {}).items()),
        )

    def url_for(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}{self.endpoint}"

    def header_dict(self) -> Dict[str, str]:
        return dict(self.headers)

    def __str__(self) -> str:
        return f"{self.method} {self.endpoint}"
