"""
Models and registry used by the database tests
"""
import datetime
from typing import Optional

from sqlalchemy import Column, ForeignKey, Table, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from sajsonapi import Registry
from sajsonapi.db import SAModel


class Base(DeclarativeBase):
    pass


book_tags = Table(
    "book_tags",
    Base.metadata,
    Column("book_id", ForeignKey("books.id"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id"), primary_key=True),
)


class Person(Base):
    __tablename__ = "people"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str]
    email: Mapped[Optional[str]]
    password: Mapped[Optional[str]]
    updated_at: Mapped[Optional[datetime.datetime]]
    books: Mapped[list["Book"]] = relationship(back_populates="author")
    profile: Mapped[Optional["Profile"]] = relationship(back_populates="person")


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    bio: Mapped[str]
    person_id: Mapped[Optional[int]] = mapped_column(ForeignKey("people.id"))
    person: Mapped[Optional[Person]] = relationship(back_populates="profile")


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str]
    rating: Mapped[Optional[int]]
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("people.id"))
    author: Mapped[Optional[Person]] = relationship(back_populates="books")
    tags: Mapped[list["Tag"]] = relationship(secondary=book_tags)


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str]


def tag_count(qb):
    subquery = select(func.count()).where(book_tags.c.book_id == Book.id).scalar_subquery()
    return qb.add_column("tag_count", subquery)


def hide_person(qb, query, context):
    if context and context.get("hidden_name"):
        qb.where("name", "!=", context["hidden_name"])
    return qb


def make_registry() -> Registry:
    return Registry(
        {
            "People": {
                "model": SAModel(Person),
                "base_path": "/people",
                "has_one": {"profile": {"type": "Profiles", "included": True}},
                "has_many": {"books": {"type": "Books"}},
                "special_columns": {"hidden": ["password"], "updated": "updated_at"},
                "hooks": {"index": hide_person},
            },
            "Profiles": {
                "model": SAModel(Profile),
                "base_path": "/profiles",
                "has_one": {"person": {"type": "People", "column": "person_id"}},
            },
            "Books": {
                "model": SAModel(Book),
                "base_path": "/books",
                "has_one": {"author": {"type": "People", "column": "author_id"}},
                "has_many": {"tags": {"type": "Tags"}},
                "special_columns": {"meta": ["rating"], "optional": {"tag_count": tag_count}},
            },
            "Tags": {
                "model": SAModel(Tag),
                "base_path": "/tags",
                "readonly": True,
            },
        }
    )
