"""
Product Facts

The normalized bag of product evidence the heuristics, carton estimator and
freight engine read. Scraper output arrives with inconsistent field names
and shapes; it is folded into this one model at the boundary so the engine
always sees the same fields.
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, AliasChoices

from freight_engine.geometry.units import BoxDims, to_number


class ProductFacts(BaseModel):
    """
    Normalized product facts.

    All fields are optional. Defaults are empty strings/lists so text
    matching never has to guard against ``None``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: str = ""
    name: str = ""
    description: str = ""
    description_html: str = Field(default="", validation_alias=AliasChoices("description_html", "descriptionHtml"))
    category: str = ""
    breadcrumbs: List[str] = Field(default_factory=list)
    additional_properties: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("additional_properties", "additionalProperties"),
    )
    variants: List[str] = Field(default_factory=list)
    size: str = ""
    brand: str = ""
    vendor: str = ""
    url: str = Field(default="", validation_alias=AliasChoices("url", "canonicalUrl", "sourceUrl"))
    price: Optional[float] = None
    weight: Optional[float] = Field(default=None, validation_alias=AliasChoices("weight", "shippingWeight", "weight_lbs"))
    assembled_dims: Optional[BoxDims] = Field(
        default=None,
        validation_alias=AliasChoices("assembled_dims", "dimensionsInches", "dimensions_inches"),
    )
    carton_cubic_feet: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("carton_cubic_feet", "cartonCubicFeet"),
    )

    @field_validator("title", "name", "description", "description_html", "category", "size", "url", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("brand", "vendor", mode="before")
    @classmethod
    def _coerce_brand(cls, v: Any) -> str:
        if isinstance(v, dict):
            v = v.get("name")
        return "" if v is None else str(v)

    @field_validator("breadcrumbs", mode="before")
    @classmethod
    def _coerce_breadcrumbs(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(">") if part.strip()]
        crumbs = []
        for crumb in v:
            text = crumb.get("name") if isinstance(crumb, dict) else crumb
            if text:
                crumbs.append(str(text))
        return crumbs

    @field_validator("variants", mode="before")
    @classmethod
    def _coerce_variants(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(item) for item in v if item]

    @field_validator("additional_properties", mode="before")
    @classmethod
    def _coerce_properties(cls, v: Any) -> Dict[str, Any]:
        if not v:
            return {}
        if isinstance(v, list):
            # [{"name": ..., "value": ...}] as emitted by scrapers
            return {
                str(prop.get("name")).lower(): prop.get("value")
                for prop in v
                if isinstance(prop, dict) and prop.get("name")
            }
        return dict(v)

    @field_validator("price", "weight", "carton_cubic_feet", mode="before")
    @classmethod
    def _coerce_number(cls, v: Any) -> Optional[float]:
        return to_number(v)

    @field_validator("assembled_dims", mode="before")
    @classmethod
    def _coerce_dims(cls, v: Any) -> Optional[BoxDims]:
        if v is None or isinstance(v, BoxDims):
            return v
        if isinstance(v, dict):
            h = to_number(v.get("height", v.get("h")))
            w = to_number(v.get("width", v.get("w")))
            d = to_number(v.get("depth", v.get("d", v.get("length"))))
            if h and w and d:
                return BoxDims(height=h, width=w, depth=d)
        return None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "ProductFacts":
        """Build facts from a loose scraper/caller payload."""
        return cls.model_validate(payload or {})

    @property
    def display_name(self) -> str:
        return self.title or self.name

    @property
    def breadcrumb_text(self) -> str:
        return " > ".join(self.breadcrumbs)

    @property
    def text(self) -> str:
        """Joined, lower-cased matching text."""
        parts = [
            self.title,
            self.name,
            self.category,
            self.breadcrumb_text,
            self.description,
            self.description_html,
            json.dumps(self.additional_properties, default=str) if self.additional_properties else "",
            " ".join(self.variants),
        ]
        return " | ".join(part for part in parts if part).lower()

    def prop(self, *names: str) -> Optional[str]:
        """First non-empty additional property among ``names``."""
        for name in names:
            value = self.additional_properties.get(name)
            if value:
                return str(value)
        return None
