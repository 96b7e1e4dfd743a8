"""API routes for the booking mapper."""

import logging
from typing import Optional
from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ..catalog.models import ColumnCatalog
from ..engine.classifier import PlatformClassifier
from ..engine.evaluator import ExpressionEvaluator
from ..engine.models import BookingDraft, FieldValue
from ..engine.pipeline import DerivationPipeline
from ..listings.models import PropertyMapping
from ..listings.resolver import ListingResolver
from ..mapping.models import (
    MappingError,
    MappingRuleSet,
    MappingTemplate,
    PlatformTag,
    TemplateNotFoundError,
)
from ..mapping.resolver import resolve_mapping
from ..mapping.validator import MappingValidator, suggest_template_names, template_stats
from ..overlay.correlator import correlate_edits
from ..overlay.edits import apply_edit
from ..overlay.models import EditNotAllowedError, FieldEdit

logger = logging.getLogger(__name__)

router = APIRouter()

_evaluator = ExpressionEvaluator()
_classifier = PlatformClassifier(_evaluator)
_pipeline = DerivationPipeline(_evaluator, _classifier)
_validator = MappingValidator()


def get_template_storage():
    """Get the global template storage instance."""
    from .app import get_template_storage as _get_template_storage

    return _get_template_storage()


class CatalogPayload(BaseModel):
    """A parsed file: header names and raw rows."""

    headers: list[str]
    rows: list[list[str]] = Field(default_factory=list)
    source_name: Optional[str] = None

    def to_catalog(self) -> ColumnCatalog:
        return ColumnCatalog.from_rows(self.headers, self.rows, self.source_name)


def _rule_set(field_mappings: dict[str, dict[str, str]]) -> MappingRuleSet:
    try:
        return MappingRuleSet.from_platform_mappings(field_mappings)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


class ResolveRequest(BaseModel):
    """Request to resolve a rule set for one platform."""

    field_mappings: dict[str, dict[str, str]]
    platform: str = PlatformTag.ALL.value


class ClassifyRequest(BaseModel):
    """Request to detect the platform of every row."""

    field_mappings: dict[str, dict[str, str]]
    catalog: CatalogPayload


class ValidateRequest(BaseModel):
    """Request to validate a rule set, optionally against a file."""

    field_mappings: dict[str, dict[str, str]]
    catalog: Optional[CatalogPayload] = None


class EvaluateRequest(BaseModel):
    """Request to evaluate one expression against one row."""

    expression: str
    headers: list[str]
    row: list[str]
    derived: dict[str, FieldValue] = Field(default_factory=dict)


class DeriveRequest(BaseModel):
    """Request to derive booking drafts for a file."""

    field_mappings: dict[str, dict[str, str]]
    catalog: CatalogPayload
    property_field_mappings: dict[str, dict[str, dict[str, str]]] = Field(default_factory=dict)
    property_mappings: list[PropertyMapping] = Field(default_factory=list)


class ApplyEditRequest(BaseModel):
    """Request to apply one edit to a list of drafts."""

    drafts: list[BookingDraft]
    edit: FieldEdit


class CorrelateRequest(BaseModel):
    """Request to match edits to created bookings."""

    edits: list[FieldEdit]
    sent_payloads: list[dict]
    created_records: list[dict]
    user_id: Optional[str] = None


class TemplateCreateRequest(BaseModel):
    """Request to save a mapping template."""

    property_id: str
    mapping_name: str
    field_mappings: dict[str, dict[str, str]]
    user_id: Optional[str] = None
    is_default: bool = False


def _template_response(template: MappingTemplate) -> dict:
    return {
        "id": template.id,
        "property_id": template.property_id,
        "user_id": template.user_id,
        "mapping_name": template.mapping_name,
        "field_mappings": template.rule_set.to_platform_mappings(),
        "is_default": template.is_default,
        "created_at": template.created_at.isoformat(),
        "updated_at": template.updated_at.isoformat(),
    }


# Health check


@router.get("/health")
async def health_check():
    """Health check endpoint with diagnostics."""
    from ..config import settings

    # Gather non-secret diagnostics
    config = {
        "booking_api_url": settings.booking_api_url,
        "booking_api_token_present": bool(settings.booking_api_token),
        "database_path": str(settings.database_path),
        "max_rows_per_import": settings.max_rows_per_import,
    }

    return {
        "status": "ok",
        "service": "booking-mapper",
        "config": config,
    }


# Mapping endpoints


@router.post("/mapping/resolve")
async def resolve(request: ResolveRequest):
    """Resolve the effective rules for one platform."""
    rule_set = _rule_set(request.field_mappings)
    try:
        platform = PlatformTag.parse(request.platform)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    mapping = resolve_mapping(rule_set, platform)
    return {
        "platform": mapping.platform.value,
        "rules": [rule.model_dump(mode="json") for rule in mapping.rules],
    }


@router.post("/mapping/classify")
async def classify(request: ClassifyRequest):
    """Detect the platform of each row."""
    rule_set = _rule_set(request.field_mappings)
    catalog = request.catalog.to_catalog()

    platforms = [_classifier.classify(row, rule_set, catalog).value for row in catalog.rows]
    counts: dict[str, int] = {}
    for platform in platforms:
        counts[platform] = counts.get(platform, 0) + 1
    return {"platforms": platforms, "platform_counts": counts}


@router.post("/mapping/validate")
async def validate(request: ValidateRequest):
    """Validate a rule set and its fitness as a template."""
    rule_set = _rule_set(request.field_mappings)
    catalog = request.catalog.to_catalog() if request.catalog else None

    result = _validator.validate_rule_set(rule_set, catalog)
    template_result = _validator.validate_template(rule_set)
    return {
        **result.model_dump(mode="json"),
        "template": template_result.model_dump(mode="json"),
        "suggested_names": suggest_template_names(rule_set),
    }


@router.post("/evaluate")
async def evaluate(request: EvaluateRequest):
    """Evaluate one expression against one row."""
    catalog = ColumnCatalog.from_rows(request.headers, [request.row])
    result = _evaluator.evaluate(request.expression, catalog.rows[0], catalog, request.derived)
    return result.model_dump(mode="json")


@router.post("/derive")
async def derive(request: DeriveRequest):
    """
    Derive booking drafts for a file.

    Drafts are grouped by listing name. When property rule sets and
    listing assignments are given, rows of an assigned listing use that
    property's rule set.
    """
    rule_set = _rule_set(request.field_mappings)
    property_rule_sets = {
        property_id: _rule_set(mappings)
        for property_id, mappings in request.property_field_mappings.items()
    }
    catalog = request.catalog.to_catalog()

    try:
        _validator.ensure_valid(rule_set, catalog)
        for property_rules in property_rule_sets.values():
            _validator.ensure_valid(property_rules, catalog)
    except MappingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = _pipeline.derive(
        catalog,
        rule_set,
        property_rule_sets=property_rule_sets,
        property_mappings=request.property_mappings,
    )
    listings = ListingResolver.from_drafts(result.drafts)

    return {
        "total_drafts": result.total_drafts,
        "groups": {
            name: [draft.model_dump(mode="json") for draft in drafts]
            for name, drafts in result.groups.items()
        },
        "listing_counts": result.listing_counts(),
        "platform_counts": result.platform_counts,
        "flagged_rows": result.flagged_rows,
        "listings": [mapping.model_dump(mode="json") for mapping in listings.mappings],
    }


# Edit endpoints


@router.post("/edits/apply")
async def edits_apply(request: ApplyEditRequest):
    """Apply one edit and return the updated drafts."""
    try:
        drafts = apply_edit(request.drafts, request.edit)
    except EditNotAllowedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"drafts": [draft.model_dump(mode="json") for draft in drafts]}


@router.post("/edits/correlate")
async def edits_correlate(request: CorrelateRequest):
    """Match edits to created bookings and build audit payloads."""
    result = correlate_edits(request.edits, request.sent_payloads, request.created_records)
    response = result.model_dump(mode="json")
    if request.user_id:
        response["audit_payloads"] = result.to_audit_payloads(request.user_id)
    return response


# Template endpoints


@router.get("/templates")
async def list_templates(property_id: Optional[str] = None, user_id: Optional[str] = None):
    """List saved templates."""
    storage = get_template_storage()
    templates = await storage.list_templates(property_id=property_id, user_id=user_id)
    return {"templates": [_template_response(t) for t in templates]}


@router.get("/templates/stats")
async def get_template_stats(user_id: Optional[str] = None):
    """Summary statistics over saved templates."""
    storage = get_template_storage()
    templates = await storage.list_templates(user_id=user_id)
    return template_stats(templates).model_dump(mode="json")


@router.post("/templates")
async def create_template(request: TemplateCreateRequest):
    """Save a template after checking it maps every required field."""
    rule_set = _rule_set(request.field_mappings)
    validation = _validator.validate_template(rule_set)
    if not validation.is_valid:
        raise HTTPException(
            status_code=400,
            detail=f"Missing required fields: {', '.join(validation.missing_required_fields)}",
        )

    template = MappingTemplate(
        property_id=request.property_id,
        user_id=request.user_id,
        mapping_name=request.mapping_name,
        rule_set=rule_set,
        is_default=request.is_default,
    )
    storage = get_template_storage()
    template = await storage.store_template(template)
    return {
        "template": _template_response(template),
        "warnings": validation.warnings,
    }


@router.get("/templates/property/{property_id}/default")
async def get_default_template(property_id: str):
    """Get the default template of a property."""
    storage = get_template_storage()
    template = await storage.get_default_template(property_id)
    if template is None:
        raise HTTPException(status_code=404, detail="No default template for property")
    return _template_response(template)


@router.get("/templates/{template_id}")
async def get_template(template_id: str):
    """Get a template by ID."""
    storage = get_template_storage()
    try:
        template = await storage.get_template(template_id)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _template_response(template)


@router.put("/templates/{template_id}/default")
async def set_default_template(template_id: str):
    """Make a template its property's default."""
    storage = get_template_storage()
    try:
        template = await storage.set_default(template_id)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _template_response(template)


@router.delete("/templates/{template_id}")
async def delete_template(template_id: str):
    """Delete a template."""
    storage = get_template_storage()
    deleted = await storage.delete_template(template_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Template not found")
    return {"status": "ok", "message": "Template deleted successfully"}
