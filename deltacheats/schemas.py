from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CheatOut(BaseModel):
    name: str
    notes: str = ""
    codes: str = ""
    is_enabled: bool = False
    is_bookmarked: bool = False


class FolderOut(BaseModel):
    folder_name: str
    allowed_on: int = 0
    cheats: List[CheatOut]


class GameCheatsOut(BaseModel):
    identifier: str
    content_key: Optional[str] = None
    game_name: str
    folders: List[FolderOut]


class GamesOut(BaseModel):
    games: List[GameCheatsOut]


class CatalogCheatOut(BaseModel):
    name: str
    notes: str = ""
    codes: str = ""


class CatalogFolderOut(BaseModel):
    folder_name: str
    allowed_on: int = 0
    cheats: List[CatalogCheatOut]


class CatalogEntryOut(BaseModel):
    identifier: str
    name: str
    date: str
    folders: List[CatalogFolderOut]


class CatalogGameOut(BaseModel):
    identifier: str
    name: str
    date: str


class ErrorOut(BaseModel):
    error: str
    identifier: Optional[str] = None


class MessageOut(BaseModel):
    message: str


class DeltaImportOut(BaseModel):
    message: str
    content_key: str
    cheats: int


class SelectedCheatIn(BaseModel):
    name: str
    codes: str = ""
    enabled: bool = True

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


class GenerateDeltaIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gameid: str
    game_name: str
    selected_cheats: List[SelectedCheatIn] = Field(alias="selectedCheats", min_length=1)
    content_key: Optional[str] = None


class BookmarkItemIn(BaseModel):
    cheat_name: str
    cheat_code: Optional[str] = None


class BookmarksIn(BaseModel):
    gameid: str
    bookmarks: List[Union[str, BookmarkItemIn]]

    @field_validator("gameid")
    @classmethod
    def gameid_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class BookmarksOut(BaseModel):
    bookmarks: List[str]


class BookmarkOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    gameid: str
    cheat_name: str
    cheat_code: Optional[str] = None


class AllBookmarksOut(BaseModel):
    bookmarks: List[BookmarkOut]
