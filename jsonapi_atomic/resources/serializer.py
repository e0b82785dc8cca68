from typing import Any, Dict, Optional, Set

from fastapi.encoders import jsonable_encoder

from jsonapi_atomic.resources.registry import ResourceRegistry
from jsonapi_atomic.utils.filters import filter_fields


class JsonApiSerializer:
    """Render ORM models as JSON:API resource objects."""

    def __init__(self, registry: ResourceRegistry, route_prefix: str = ""):
        self.registry = registry
        self.route_prefix = route_prefix.rstrip("/")

    def serialize(
        self,
        resource_type: str,
        model: Any,
        fields: Optional[Set[str]] = None,
    ) -> Dict[str, Any]:
        """
        Build the resource object for `model`.

        Args:
            resource_type: JSON:API type of the model
            model: ORM instance
            fields: Sparse fieldset for this type; None means every field

        Returns:
            Resource object with type, id, attributes, relationships and links
        """
        metadata = self.registry.get(resource_type)
        resource_id = str(getattr(model, metadata.id_attribute))
        self_link = f"{self.route_prefix}/{resource_type}/{resource_id}"

        attributes = {name: getattr(model, name) for name in metadata.attributes}

        relationships = {}
        for relationship in metadata.relationships.values():
            if relationship.to_many:
                target = self.registry.get(relationship.target_type)
                linkage: Any = [
                    {"type": relationship.target_type, "id": str(getattr(item, target.id_attribute))}
                    for item in getattr(model, relationship.attribute)
                ]
            else:
                value = getattr(model, relationship.attribute)
                linkage = {"type": relationship.target_type, "id": str(value)} if value is not None else None

            relationships[relationship.name] = {
                "links": {
                    "self": f"{self_link}/relationships/{relationship.name}",
                    "related": f"{self_link}/{relationship.name}",
                },
                "data": linkage,
            }

        if fields is not None:
            attributes = filter_fields(attributes, fields)
            relationships = filter_fields(relationships, fields)

        resource: Dict[str, Any] = {
            "type": resource_type,
            "id": resource_id,
            "attributes": jsonable_encoder(attributes),
        }
        if relationships:
            resource["relationships"] = relationships
        resource["links"] = {"self": self_link}
        return resource
