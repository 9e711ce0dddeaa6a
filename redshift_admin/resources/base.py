# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
Base classes shared by every managed resource.

A resource is bound to a Client and works on a pydantic state model. The
caller passes the declared state to ``create``/``update`` and receives the
state read back from the catalog, so differences between the two reveal
drift. ``read`` returns None when the object no longer exists.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from ..client import Client
from ..exceptions import ErrorCode, RedshiftAdminException
from ..loggings import get_logger

logger = get_logger(__name__)


class ResourceModel(BaseModel):
    """State of a managed object. ``id`` is empty until the object is created."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: Optional[str] = Field(default=None, description="Catalog identifier of the object")


M = TypeVar("M", bound=ResourceModel)


class Resource(ABC, Generic[M]):
    """Create/Read/Update/Delete operations for one Redshift object type."""

    type_name: ClassVar[str]
    model: ClassVar[Type[ResourceModel]]

    def __init__(self, client: Client):
        self.client = client

    def parse(self, data: Union[M, Dict[str, Any]]) -> M:
        """
        Accept either a state model or a plain dict.

        Raises:
            TypeError: If data is neither
        """
        if isinstance(data, dict):
            return self.model(**data)
        if not isinstance(data, self.model):
            raise TypeError(f"{self.type_name} state must be {self.model.__name__} or dict, got {type(data)}")
        return data

    @abstractmethod
    def create(self, data: Union[M, Dict[str, Any]]) -> M:
        ...

    @abstractmethod
    def read(self, data: Union[M, Dict[str, Any]]) -> Optional[M]:
        ...

    def update(self, prior: Union[M, Dict[str, Any]], desired: Union[M, Dict[str, Any]]) -> M:
        raise RedshiftAdminException(
            ErrorCode.UNSUPPORTED_OPERATION,
            message_args={"error_message": f"{self.type_name} cannot be updated in place, recreate it"},
        )

    @abstractmethod
    def delete(self, data: Union[M, Dict[str, Any]]) -> None:
        ...

    def exists(self, data: Union[M, Dict[str, Any]]) -> bool:
        return self.read(data) is not None

    def import_state(self, resource_id: str) -> Optional[M]:
        """Read an existing object by its identifier."""
        return self.read(self.model.model_construct(id=resource_id))

    def _require_id(self, state: M) -> str:
        if not state.id:
            raise RedshiftAdminException(
                ErrorCode.INVALID_ARGUMENT, message_args={"error_message": f"{self.type_name} has no id"}
            )
        return state.id

    def _not_found(self, state: M) -> None:
        logger.warning("object not found, removing from state", resource_type=self.type_name, id=state.id)


class DataSource(ABC):
    """Read-only lookup of catalog information."""

    type_name: ClassVar[str]

    def __init__(self, client: Client):
        self.client = client

    @abstractmethod
    def read(self, **kwargs: Any) -> BaseModel:
        ...

    def _missing(self, resource_type: str, name: str) -> RedshiftAdminException:
        return RedshiftAdminException(
            ErrorCode.RESOURCE_NOT_FOUND, message_args={"resource_type": resource_type, "name": name}
        )
