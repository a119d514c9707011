"""
Business record the profile is qualified against
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any


@dataclass
class BusinessProfile:
    name: str
    id: str = ""
    industry: str = ""
    target_audience: str = ""
    value_proposition: str = ""
    pain_points: List[str] = field(default_factory=list)

    # Generated context (refreshed every 24h)
    one_liner: str = ""
    context_pack: Optional[Dict[str, Any]] = None
    context_updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "industry": self.industry,
            "target_audience": self.target_audience,
            "value_proposition": self.value_proposition,
            "pain_points": list(self.pain_points),
            "business_one_liner": self.one_liner,
            "business_context_pack": self.context_pack,
        }
