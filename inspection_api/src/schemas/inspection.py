from __future__ import annotations

from typing import Annotated, List, Optional, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator


class _FrozenModel(BaseModel):
    """Submission models are immutable once received and accept field names or wire aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def _text(v) -> str:
    if v is None:
        return ""
    return str(v)


# Free-text form values: null becomes "", numbers are kept as their string form.
Text = Annotated[str, BeforeValidator(_text)]


def _string_or_none(v) -> Optional[str]:
    return v if isinstance(v, str) else None


# Image and address slots: anything that is not a string (false, 0, {}) counts as absent.
OptionalText = Annotated[Optional[str], BeforeValidator(_string_or_none)]


class HeaderData(_FrozenModel):
    """Inspection metadata shown at the top of the report."""
    department: Text = Field("", validation_alias=AliasChoices("department", "departamento"))
    supervisor: Text = Field("", validation_alias=AliasChoices("supervisor", "encarregado"))
    qsms_responsible: Text = Field(
        "", validation_alias=AliasChoices("qsms_responsible", "responsavelQSMS")
    )
    contract_manager: Text = Field(
        "", validation_alias=AliasChoices("contract_manager", "gerenteContrato")
    )
    unit: Text = Field("", validation_alias=AliasChoices("unit", "unidade"))
    date: Text = Field("", validation_alias=AliasChoices("date", "data"))
    time: Text = Field("", validation_alias=AliasChoices("time", "hora"))
    location: Text = Field("", validation_alias=AliasChoices("location", "local"))
    notification_email: OptionalText = Field(
        None,
        validation_alias=AliasChoices("notification_email", "email", "emailDestinatario"),
        description="Optional address the PDF summary is emailed to",
    )


class Participant(_FrozenModel):
    """Person present at the inspection."""
    name: Text = Field("", validation_alias=AliasChoices("name", "nome"))
    role: Text = Field("", validation_alias=AliasChoices("role", "funcao"))


class InspectionItem(_FrozenModel):
    """One finding. `photo` is an embedded data-URL image or anything else (treated as absent)."""
    sequence_number: Union[int, str] = Field(
        "", validation_alias=AliasChoices("sequence_number", "id", "item")
    )
    observed_fact: Text = Field("", validation_alias=AliasChoices("observed_fact", "fato"))
    recommendations: Text = Field(
        "", validation_alias=AliasChoices("recommendations", "recomendacoes")
    )
    due_date: Text = Field("", validation_alias=AliasChoices("due_date", "prazo"))
    responsible: Text = Field("", validation_alias=AliasChoices("responsible", "responsavel"))
    conclusion_note: Text = Field("", validation_alias=AliasChoices("conclusion_note", "conclusao"))
    photo: OptionalText = Field(None, validation_alias=AliasChoices("photo", "foto"))

    @field_validator("sequence_number", mode="before")
    @classmethod
    def _sequence_or_blank(cls, v):
        return "" if v is None else v


class ConclusionData(_FrozenModel):
    overall: Text = Field("", validation_alias=AliasChoices("overall", "conclusaoGeral"))


class Signatures(_FrozenModel):
    """Two data-URL images captured on the signature pads; either may be empty."""
    inspector: OptionalText = Field(
        None, validation_alias=AliasChoices("inspector", "responsavelInspecao")
    )
    unit_responsible: OptionalText = Field(
        None, validation_alias=AliasChoices("unit_responsible", "responsavelUnidade")
    )


# PUBLIC_INTERFACE
class InspectionSubmission(_FrozenModel):
    """Complete inspection report as posted by the form."""
    header: HeaderData = Field(
        default_factory=HeaderData, validation_alias=AliasChoices("header", "headerData")
    )
    participants: List[Participant] = Field(default_factory=list)
    items: List[InspectionItem] = Field(
        default_factory=list, validation_alias=AliasChoices("items", "inspectionItems")
    )
    conclusion: ConclusionData = Field(
        default_factory=ConclusionData,
        validation_alias=AliasChoices("conclusion", "conclusionData"),
    )
    signatures: Signatures = Field(default_factory=Signatures)

    @field_validator("participants", "items", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("header", "conclusion", "signatures", mode="before")
    @classmethod
    def _none_as_default(cls, v):
        return {} if v is None else v


# PUBLIC_INTERFACE
class SubmissionResponse(BaseModel):
    """JSON envelope returned by the submit endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(..., description="Whether the record was appended")
    message: str = Field(..., description="Human readable summary")
    inspection_id: Optional[str] = Field(None, serialization_alias="inspectionId")
    rows_appended: Optional[int] = Field(None, serialization_alias="rowsAppended")
    document_generated: Optional[bool] = Field(None, serialization_alias="documentGenerated")
    notification_sent: Optional[bool] = Field(None, serialization_alias="notificationSent")
    updated_range: Optional[str] = Field(None, serialization_alias="updatedRange")
    error: Optional[str] = Field(None, description="Failure reason; never contains credentials")
