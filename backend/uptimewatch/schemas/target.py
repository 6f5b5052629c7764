"""Target schemas - admin input and the validated per-tick check policy."""
import json
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

MIN_CHECK_INTERVAL = 30

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
AlertKind = Literal["unavailable", "contains_keyword", "not_contains_keyword", "http_status_other_than"]

KEYWORD_KINDS = ("contains_keyword", "not_contains_keyword")


def parse_headers(value) -> Dict[str, str]:
    """Parse a JSON header object, failing on anything that is not string to string."""
    if value is None or value == "":
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"request_headers is not valid JSON: {e.msg}")
    if not isinstance(value, dict):
        raise ValueError("request_headers must be a JSON object")
    return {str(k): str(v) for k, v in value.items()}


def parse_statuses(value) -> Optional[List[int]]:
    """Parse "200, 201" (or a list) into status codes; None means the default."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        parts = [p.strip() for p in value.split(",")]
        codes = [int(p) for p in parts if p.isdigit()]
    else:
        codes = [int(p) for p in value]
    return codes or None


class AlertPolicy(BaseModel):
    """How a response is turned into a base verdict."""
    kind: AlertKind = "unavailable"
    keyword: Optional[str] = None
    http_statuses: Optional[List[int]] = None

    @field_validator("http_statuses", mode="before")
    @classmethod
    def _parse_statuses(cls, v):
        return parse_statuses(v)

    @model_validator(mode="after")
    def _one_parameter_set(self):
        if self.keyword and self.kind not in KEYWORD_KINDS:
            raise ValueError(f"alert keyword is not used by alert type '{self.kind}'")
        if self.http_statuses and self.kind != "http_status_other_than":
            raise ValueError(f"alert HTTP statuses are not used by alert type '{self.kind}'")
        return self

    @property
    def expected_statuses(self) -> List[int]:
        return self.http_statuses or [200]


class CheckPolicy(BaseModel):
    """Everything the probe needs for one target, parsed once when it is scheduled."""
    target_id: int
    name: str
    url: str
    http_method: HttpMethod = "GET"
    request_body: Optional[str] = None
    request_headers: Dict[str, str] = Field(default_factory=dict)
    follow_redirects: bool = True
    keep_cookies: bool = True
    check_interval: int = Field(default=900, ge=MIN_CHECK_INTERVAL)
    timeout: int = Field(default=30, gt=0)
    alert: AlertPolicy = Field(default_factory=AlertPolicy)
    verify_ssl: bool = False
    ssl_expiry_threshold: int = Field(default=30, ge=0)
    verify_domain: bool = False

    @field_validator("http_method", mode="before")
    @classmethod
    def _upper_method(cls, v):
        return (v or "GET").upper()

    @field_validator("request_headers", mode="before")
    @classmethod
    def _parse_headers(cls, v):
        return parse_headers(v)

    @classmethod
    def from_target(cls, target) -> "CheckPolicy":
        """Build a policy from a ``Target`` row; raises ``ValidationError`` on bad config."""
        kind = target.alert_type or "unavailable"
        return cls(
            target_id=target.id,
            name=target.name,
            url=target.url,
            http_method=target.http_method,
            request_body=target.request_body,
            request_headers=target.request_headers,
            follow_redirects=True if target.follow_redirects is None else target.follow_redirects,
            keep_cookies=True if target.keep_cookies is None else target.keep_cookies,
            check_interval=target.check_interval,
            timeout=target.timeout,
            alert=AlertPolicy(
                kind=kind,
                keyword=target.alert_keyword if kind in KEYWORD_KINDS else None,
                http_statuses=target.alert_http_statuses if kind == "http_status_other_than" else None,
            ),
            verify_ssl=bool(target.verify_ssl),
            ssl_expiry_threshold=30 if target.ssl_expiry_threshold is None else target.ssl_expiry_threshold,
            verify_domain=bool(target.verify_domain),
        )


class TargetCreate(BaseModel):
    """Schema for creating a new target."""
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., pattern=r"^https?://")
    http_method: HttpMethod = "GET"
    request_body: Optional[str] = None
    request_headers: Optional[Dict[str, str]] = None
    follow_redirects: bool = True
    keep_cookies: bool = True
    check_interval: int = Field(default=900, ge=MIN_CHECK_INTERVAL, le=86400)
    timeout: int = Field(default=30, gt=0, le=300)
    alert_type: AlertKind = "unavailable"
    alert_keyword: Optional[str] = None
    alert_http_statuses: Optional[List[int]] = None
    verify_ssl: bool = False
    ssl_expiry_threshold: int = Field(default=30, ge=0, le=365)
    verify_domain: bool = False

    @field_validator("request_headers", mode="before")
    @classmethod
    def _parse_headers(cls, v):
        return parse_headers(v) or None

    @field_validator("alert_http_statuses", mode="before")
    @classmethod
    def _parse_statuses(cls, v):
        return parse_statuses(v)

    @model_validator(mode="after")
    def _check_alert_parameters(self):
        AlertPolicy(kind=self.alert_type, keyword=self.alert_keyword, http_statuses=self.alert_http_statuses)
        return self

    def to_columns(self) -> dict:
        """Column values for a ``Target`` row."""
        data = self.model_dump()
        data["request_headers"] = json.dumps(self.request_headers) if self.request_headers else None
        data["alert_http_statuses"] = (
            ",".join(str(c) for c in self.alert_http_statuses) if self.alert_http_statuses else None
        )
        return data


class TargetUpdate(BaseModel):
    """Schema for updating a target. Only supplied fields change."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[str] = Field(None, pattern=r"^https?://")
    http_method: Optional[HttpMethod] = None
    request_body: Optional[str] = None
    request_headers: Optional[Dict[str, str]] = None
    follow_redirects: Optional[bool] = None
    keep_cookies: Optional[bool] = None
    check_interval: Optional[int] = Field(None, ge=MIN_CHECK_INTERVAL, le=86400)
    timeout: Optional[int] = Field(None, gt=0, le=300)
    alert_type: Optional[AlertKind] = None
    alert_keyword: Optional[str] = None
    alert_http_statuses: Optional[List[int]] = None
    verify_ssl: Optional[bool] = None
    ssl_expiry_threshold: Optional[int] = Field(None, ge=0, le=365)
    verify_domain: Optional[bool] = None

    @field_validator("request_headers", mode="before")
    @classmethod
    def _parse_headers(cls, v):
        return parse_headers(v) if v is not None else None

    @field_validator("alert_http_statuses", mode="before")
    @classmethod
    def _parse_statuses(cls, v):
        return parse_statuses(v)

    def to_columns(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        if "request_headers" in data:
            data["request_headers"] = json.dumps(self.request_headers) if self.request_headers else None
        if "alert_http_statuses" in data:
            data["alert_http_statuses"] = (
                ",".join(str(c) for c in self.alert_http_statuses) if self.alert_http_statuses else None
            )
        return data
