"""
Merge engine for appending an upload to an existing corpus.
Renumbers images and annotations and rewrites annotation image references.
"""

from typing import Dict, List, Sequence

from pydantic import BaseModel, Field

from src.config import OrphanAnnotationPolicy
from src.models.coco import Image, Annotation
from src.utils.logging import logger
from src.utils.exceptions import OrphanAnnotationError


class MergeResult(BaseModel):
    """Renumbered records ready to be written."""
    images: List[Image] = Field(default_factory=list)
    annotations: List[Annotation] = Field(default_factory=list)
    image_id_map: Dict[int, int] = Field(default_factory=dict, description="Original image id to new id")
    orphans: List[Annotation] = Field(default_factory=list)


def find_orphan_annotations(images: Sequence[Image], annotations: Sequence[Annotation]) -> List[Annotation]:
    """Annotations whose image_id does not match any image in the same upload."""
    image_ids = {image.id for image in images}
    return [annotation for annotation in annotations if annotation.image_id not in image_ids]


def reconcile(existing_max_image_id: int, existing_max_annotation_id: int,
              images: Sequence[Image], annotations: Sequence[Annotation],
              orphan_policy: OrphanAnnotationPolicy = OrphanAnnotationPolicy.REJECT) -> MergeResult:
    """
    Renumber an upload so it can be appended after the existing ids.

    The image at 1-based position ``k`` gets ``existing_max_image_id + k`` and
    annotations are numbered the same way from ``existing_max_annotation_id``.
    Each annotation's ``image_id`` is rewritten through the original-to-new
    image id map. Annotations whose ``image_id`` is not in the map are
    handled according to ``orphan_policy``.
    """
    result = MergeResult()

    for position, image in enumerate(images, start=1):
        new_id = existing_max_image_id + position
        if image.id in result.image_id_map:
            logger.warning(f"Duplicate image id {image.id} in upload; annotations will point at image {new_id}")
        result.image_id_map[image.id] = new_id
        result.images.append(image.model_copy(update={"id": new_id}))

    for position, annotation in enumerate(annotations, start=1):
        new_id = existing_max_annotation_id + position
        new_image_id = result.image_id_map.get(annotation.image_id)

        if new_image_id is None:
            result.orphans.append(annotation)
            if orphan_policy == OrphanAnnotationPolicy.DROP:
                continue

        result.annotations.append(
            annotation.model_copy(update={"id": new_id, "image_id": new_image_id})
        )

    if result.orphans:
        if orphan_policy == OrphanAnnotationPolicy.REJECT:
            raise OrphanAnnotationError(
                annotation_ids=[annotation.id for annotation in result.orphans],
                image_ids=[annotation.image_id for annotation in result.orphans]
            )
        logger.warning(
            f"{len(result.orphans)} annotation(s) reference images missing from the upload "
            f"(policy: {orphan_policy.value})"
        )

    return result
