import uuid
from database.db_manager import DatabaseManager
from models.category import Category, Tag


class CategoryDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def get_all(self) -> list[Category]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM categories ORDER BY name").fetchall()
        return [Category(id=r["id"], name=r["name"], type=r["type"]) for r in rows]

    def create(self, name: str, type_: str = "both") -> Category:
        category = Category(id=uuid.uuid4().hex, name=name, type=type_)
        conn = self._db.get_connection()
        conn.execute(
            "INSERT INTO categories(id, name, type) VALUES (?, ?, ?)",
            (category.id, category.name, category.type),
        )
        conn.commit()
        return category


class TagDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def get_all(self) -> list[Tag]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM tags ORDER BY name").fetchall()
        return [Tag(id=r["id"], name=r["name"]) for r in rows]

    def create(self, name: str) -> Tag:
        tag = Tag(id=uuid.uuid4().hex, name=name)
        conn = self._db.get_connection()
        conn.execute("INSERT INTO tags(id, name) VALUES (?, ?)", (tag.id, tag.name))
        conn.commit()
        return tag
