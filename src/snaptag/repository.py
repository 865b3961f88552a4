"""SQLAlchemy-backed tag store: images, tags, region tags and tag search."""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator, Sequence

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.orm import Session

from utils.logging import get_logger
from snaptag.db import Image, ImageFingerprint, ImageTag, RegionTagRecord, Tag
from snaptag.query import ImageRecord, QueryMatcher, text_matches
from snaptag.tags import RegionTag, TagCleanupPlan, normalize_tag, normalize_tags, plan_tag_cleanup

LOGGER = get_logger(__name__, extra={"component": "tag_repository"})


class TagRepository:
    """Persist images and their tags via SQLAlchemy.

    Tags are stored once per normalized name; linking ``"Yandoit"`` and
    ``"yandoit "`` to images reuses the same row. Methods flush but never
    commit, leaving transaction boundaries to the caller.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_image(
        self,
        *,
        filename: str,
        storage_path: str,
        original_name: str | None = None,
        title: str | None = None,
        description: str | None = None,
        file_hash: str | None = None,
    ) -> Image:
        now = time.time()
        image = Image(
            filename=filename,
            storage_path=storage_path,
            original_name=original_name,
            title=title,
            description=description,
            file_hash=file_hash,
            created_at=now,
            updated_at=now,
        )
        self._session.add(image)
        self._session.flush()
        LOGGER.info("image_created", extra={"image_id": image.id, "storage_path": storage_path})
        return image

    def get_image(self, image_id: int) -> Image | None:
        return self._session.get(Image, image_id)

    def find_by_file_hash(self, file_hash: str) -> Image | None:
        stmt = select(Image).where(Image.file_hash == file_hash).order_by(Image.id).limit(1)
        return self._session.execute(stmt).scalar_one_or_none()

    def get_or_create_tag(self, name: str) -> Tag:
        normalized = normalize_tag(name)
        tag = self._session.execute(select(Tag).where(Tag.name == normalized)).scalar_one_or_none()
        if tag is not None:
            return tag

        tag = Tag(name=normalized, created_at=time.time())
        self._session.add(tag)
        self._session.flush()
        LOGGER.info("tag_created", extra={"tag": normalized})
        return tag

    def get_tags(self, image_id: int) -> list[str]:
        """General tags of an image in the order they were first attached."""

        stmt = (
            select(Tag.name)
            .join(ImageTag, ImageTag.tag_id == Tag.id)
            .where(ImageTag.image_id == image_id)
            .order_by(ImageTag.position, Tag.id)
        )
        return list(self._session.execute(stmt).scalars())

    def get_region_tags(self, image_id: int) -> list[RegionTag]:
        stmt = select(RegionTagRecord).where(RegionTagRecord.image_id == image_id).order_by(RegionTagRecord.id)
        return [
            RegionTag(name=row.tag_name, x=row.x, y=row.y, width=row.width, height=row.height)
            for row in self._session.execute(stmt).scalars()
        ]

    def add_tags(self, image_id: int, tags: Iterable[str]) -> list[str]:
        """Attach ``tags`` to an image; blank and already-attached tags are skipped.

        Returns the normalized tags that were newly attached.
        """

        existing = set(self.get_tags(image_id))
        position = self._next_position(image_id)
        added: list[str] = []
        for name in normalize_tags(tags):
            if name in existing:
                continue
            tag = self.get_or_create_tag(name)
            self._session.add(ImageTag(image_id=image_id, tag_id=tag.id, position=position))
            existing.add(name)
            added.append(name)
            position += 1

        if added:
            self._touch(image_id)
            self._session.flush()
            LOGGER.info("image_tags_added", extra={"image_id": image_id, "tags": added})
        return added

    def remove_tag(self, image_id: int, name: str) -> bool:
        normalized = normalize_tag(name)
        tag_id = self._session.execute(select(Tag.id).where(Tag.name == normalized)).scalar_one_or_none()
        if tag_id is None:
            return False
        result = self._session.execute(
            delete(ImageTag).where(ImageTag.image_id == image_id, ImageTag.tag_id == tag_id)
        )
        if result.rowcount:
            self._touch(image_id)
        return bool(result.rowcount)

    def add_region_tag(self, image_id: int, region: RegionTag) -> RegionTagRecord:
        row = RegionTagRecord(
            image_id=image_id,
            tag_name=region.name,
            x=region.x,
            y=region.y,
            width=region.width,
            height=region.height,
        )
        self._session.add(row)
        self._touch(image_id)
        self._session.flush()
        LOGGER.info("region_tag_added", extra={"image_id": image_id, "tag": region.name})
        return row

    def delete_image(self, image_id: int) -> bool:
        """Remove an image together with its tag links, regions and fingerprint."""

        image = self._session.get(Image, image_id)
        if image is None:
            return False

        self._session.execute(delete(ImageTag).where(ImageTag.image_id == image_id))
        self._session.execute(delete(RegionTagRecord).where(RegionTagRecord.image_id == image_id))
        self._session.execute(delete(ImageFingerprint).where(ImageFingerprint.image_id == image_id))
        self._session.delete(image)
        self._session.flush()
        LOGGER.info("image_deleted", extra={"image_id": image_id})
        return True

    def load_record(self, image_id: int) -> ImageRecord | None:
        image = self._session.get(Image, image_id)
        if image is None:
            return None
        return self._to_record(image)

    def iter_records(self) -> Iterator[ImageRecord]:
        for image in self._session.execute(select(Image).order_by(Image.id)).scalars():
            yield self._to_record(image)

    def search_image_ids(self, required_tags: Sequence[str] = (), term: str | None = None) -> list[int]:
        """Ids of images carrying every required tag, optionally narrowed by ``term``.

        Each required tag becomes its own ``EXISTS`` clause over general tags
        or region tags, and the clauses are joined with AND.

        Raises:
            EmptyTagError: if a required tag is blank.
        """

        wanted = QueryMatcher.prepare(required_tags)
        stmt = select(Image.id)
        for name in wanted:
            general = exists().where(
                ImageTag.image_id == Image.id,
                ImageTag.tag_id == Tag.id,
                Tag.name == name,
            )
            region = exists().where(
                RegionTagRecord.image_id == Image.id,
                func.lower(RegionTagRecord.tag_name) == name,
            )
            stmt = stmt.where(general | region)

        ids = list(self._session.execute(stmt.order_by(Image.id)).scalars())
        if term and term.strip():
            images = self._session.execute(select(Image).where(Image.id.in_(ids)).order_by(Image.id)).scalars()
            ids = [image.id for image in images if text_matches(term, self._to_record(image))]

        LOGGER.info(
            "tag_search_complete",
            extra={"required_tags": list(wanted), "term": term or "", "result_count": len(ids)},
        )
        return ids

    def all_tag_names(self) -> list[str]:
        return list(self._session.execute(select(Tag.name).order_by(Tag.name)).scalars())

    def apply_tag_cleanup(self, plan: TagCleanupPlan | None = None) -> TagCleanupPlan:
        """Run the administrative normalization pass over stored tags.

        Comma-joined tags are replaced by their parts on every image that used
        them, and copies or unnormalized spellings are folded into their
        canonical tag. Region tag names are rewritten the same way.
        """

        active = plan if plan is not None else plan_tag_cleanup(self.all_tag_names())
        if active.is_empty:
            LOGGER.info("tag_cleanup_noop")
            return active

        for source, parts in active.splits.items():
            image_ids = self._image_ids_for_tag(source)
            for image_id in image_ids:
                self._replace_link(image_id, source, parts)
            self._rename_regions(source, parts[0])
            self._drop_tag(source)
            LOGGER.info("tag_cleanup_split", extra={"tag": source, "parts": parts, "images": len(image_ids)})

        for source, target in active.merges.items():
            image_ids = self._image_ids_for_tag(source)
            for image_id in image_ids:
                self._replace_link(image_id, source, [target])
            self._rename_regions(source, target)
            self._drop_tag(source)
            LOGGER.info("tag_cleanup_merge", extra={"tag": source, "target": target, "images": len(image_ids)})

        self._session.flush()
        return active

    def _to_record(self, image: Image) -> ImageRecord:
        return ImageRecord(
            image_id=image.id,
            tags=self.get_tags(image.id),
            region_tags=self.get_region_tags(image.id),
            filename=image.filename or "",
            title=image.title or "",
            description=image.description or "",
            original_name=image.original_name or "",
            file_hash=image.file_hash,
        )

    def _next_position(self, image_id: int) -> int:
        current = self._session.execute(
            select(func.max(ImageTag.position)).where(ImageTag.image_id == image_id)
        ).scalar_one_or_none()
        return 0 if current is None else int(current) + 1

    def _touch(self, image_id: int) -> None:
        image = self._session.get(Image, image_id)
        if image is not None:
            image.updated_at = time.time()

    def _image_ids_for_tag(self, stored_name: str) -> list[int]:
        stmt = (
            select(ImageTag.image_id)
            .join(Tag, Tag.id == ImageTag.tag_id)
            .where(Tag.name == stored_name)
            .order_by(ImageTag.image_id)
        )
        return list(self._session.execute(stmt).scalars())

    def _replace_link(self, image_id: int, stored_name: str, replacements: Sequence[str]) -> None:
        """Swap one tag link for ``replacements`` at the same position.

        Replacements already attached to the image keep their own position;
        later links shift down to make room for the rest.
        """

        tag_id = self._session.execute(select(Tag.id).where(Tag.name == stored_name)).scalar_one()
        link = self._session.get(ImageTag, (image_id, tag_id))
        position = link.position
        self._session.delete(link)
        self._session.flush()

        existing = set(self.get_tags(image_id))
        fresh = [name for name in normalize_tags(replacements) if name not in existing]
        if len(fresh) > 1:
            self._session.execute(
                update(ImageTag)
                .where(ImageTag.image_id == image_id, ImageTag.position > position)
                .values(position=ImageTag.position + len(fresh) - 1)
            )
        for offset, name in enumerate(fresh):
            tag = self.get_or_create_tag(name)
            self._session.add(ImageTag(image_id=image_id, tag_id=tag.id, position=position + offset))

        self._touch(image_id)
        self._session.flush()

    def _drop_tag(self, stored_name: str) -> None:
        self._session.execute(delete(Tag).where(Tag.name == stored_name))

    def _rename_regions(self, stored_name: str, target: str) -> None:
        rows = self._session.execute(select(RegionTagRecord).where(RegionTagRecord.tag_name == stored_name)).scalars()
        for row in rows:
            row.tag_name = target


__all__ = ["TagRepository"]
