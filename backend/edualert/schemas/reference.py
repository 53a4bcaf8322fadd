from typing import List, Optional
from edualert.schemas.common import APIModel


class RegionOut(APIModel):
    id: int
    name: str

class SchoolLevelOut(APIModel):
    id: int
    name: str

class SchoolOut(APIModel):
    id: int
    name: str
    code: Optional[str] = None
    region_id: int
    school_level_id: int
    school_level: Optional[SchoolLevelOut] = None

class RegionsResponse(APIModel):
    regions: List[RegionOut]

class SchoolLevelsResponse(APIModel):
    school_levels: List[SchoolLevelOut]

class SchoolsResponse(APIModel):
    schools: List[SchoolOut]
