from findmyhelper.schemas.common import ApiModel


class CategoryResponse(ApiModel):
    id: int
    name: str
    description: str
    icon: str
