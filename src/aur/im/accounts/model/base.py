from sqlalchemy import String, orm

from typing_extensions import Annotated

str64 = Annotated[str, 64]
str255 = Annotated[str, 255]


class Base(orm.DeclarativeBase):
    type_annotation_map = {
        str64: String(64),
        str255: String(255),
    }
