from sqlalchemy import Column, Integer, String, Text

from .db import Base


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    gameid = Column(String(64), nullable=False, index=True)
    cheat_name = Column(Text, nullable=False)
    cheat_code = Column(Text, nullable=True)
