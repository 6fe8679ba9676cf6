"""도메인 모델 ↔ _source dict 변환"""

from __future__ import annotations

import dataclasses
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ModelCodec(Generic[T]):
    """
    dataclass 모델을 _source dict로 직렬화/역직렬화.

    model_class가 None이면 dict를 그대로 통과시킨다.

        codec = ModelCodec(Thing)
        codec.serialize(Thing("The first thing"))   # {"title": "The first thing"}
        codec.deserialize({"title": "x"})           # Thing(title="x")
    """

    def __init__(self, model_class: type[T] | None = None):
        if model_class is not None and not dataclasses.is_dataclass(model_class):
            raise TypeError(f"dataclass가 아닙니다: {model_class!r}")
        self.model_class = model_class

    def serialize(self, obj: T | dict) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        raise TypeError(f"직렬화할 수 없는 객체: {type(obj).__name__}")

    def deserialize(self, source: dict[str, Any]) -> T | dict:
        if self.model_class is None:
            return source
        # 매핑에 없는 필드(다른 writer가 추가한 필드)는 무시
        names = {f.name for f in dataclasses.fields(self.model_class)}
        return self.model_class(**{k: v for k, v in source.items() if k in names})
