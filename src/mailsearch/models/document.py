"""Email document and facet models returned by the gateway."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Solr field names used across the application.
FIELD_ID = "id"
FIELD_SUBJECT = "subject"
FIELD_BODY = "body"
FIELD_FROM = "from_addr"
FIELD_TO = "to_addr"
FIELD_CC = "cc_addr"
FIELD_BCC = "bcc_addr"
FIELD_SENT_AT = "sent_at"


class EmailDocument(BaseModel):
    """An email as stored in the Solr index.

    Only ``id`` is required; every other field may be missing from the
    index and is then ``None`` or an empty list.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique document identifier")
    subject: str | None = Field(default=None, description="Email subject")
    body: str | None = Field(default=None, description="Email body text")
    from_addr: str | None = Field(default=None, description="Sender address")
    to: list[str] = Field(default_factory=list, description="Recipient addresses")
    cc: list[str] = Field(default_factory=list, description="CC addresses")
    bcc: list[str] = Field(default_factory=list, description="BCC addresses")
    sent_at: datetime | None = Field(default=None, description="Time the email was sent (UTC)")
    score: float | None = Field(default=None, description="Relevance score from Solr")


class FacetValue(BaseModel):
    """A single facet value with its count."""

    model_config = ConfigDict(frozen=True)

    value: str
    count: int


class FacetResult(BaseModel):
    """Facet counts for one field or one labelled facet query."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(description="Facet field name or facet query label")
    values: list[FacetValue] = Field(default_factory=list, description="Values ordered by descending count")
