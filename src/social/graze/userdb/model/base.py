from sqlalchemy import String, orm

from typing_extensions import Annotated

str50 = Annotated[str, 50]
str255 = Annotated[str, 255]


class Base(orm.DeclarativeBase):
    type_annotation_map = {
        str50: String(50),
        str255: String(255),
    }
