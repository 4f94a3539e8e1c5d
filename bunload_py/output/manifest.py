"""
Manifest JSON output structures.

The manifest is a machine-readable inventory of a decoded container: the
header fields and one entry per module record with every pointer resolved
to absolute file offsets.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
import json

from ..errors import PointerOutOfRange
from ..formats.container import Container
from ..formats.structures import ModuleRecord, StringPointer, encoding_name, loader_extension


def _span(container: Container, pointer: StringPointer) -> Dict[str, int]:
    start, _ = container.file_span(pointer)
    return {"offset": pointer.offset, "length": pointer.length, "fileOffset": start}


@dataclass
class ManifestModule:
    """One module record in manifest form."""
    Index: int = 0
    Name: str = ""
    Encoding: str = ""
    Loader: str = ""
    LoaderId: int = 0
    ModuleFormat: int = 0
    Side: int = 0
    Pointers: Dict[str, Dict[str, int]] = field(default_factory=dict)
    OutputPath: Optional[str] = None

    @classmethod
    def from_record(cls, container: Container, index: int, record: ModuleRecord) -> 'ManifestModule':
        try:
            name = container.module_name(record)
        except PointerOutOfRange:
            # reported per module by the extractor
            name = ""
        return cls(
            Index=index,
            Name=name,
            Encoding=encoding_name(record.encoding),
            Loader=loader_extension(record.loader),
            LoaderId=record.loader,
            ModuleFormat=record.module_format,
            Side=record.side,
            Pointers={
                "name": _span(container, record.name),
                "contents": _span(container, record.contents),
                "sourceMap": _span(container, record.source_map),
                "bytecode": _span(container, record.bytecode),
                "moduleInfo": _span(container, record.module_info),
                "bytecodeOriginPath": _span(container, record.bytecode_origin_path),
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "Index": self.Index,
            "Name": self.Name,
            "Encoding": self.Encoding,
            "Loader": self.Loader,
            "LoaderId": self.LoaderId,
            "ModuleFormat": self.ModuleFormat,
            "Side": self.Side,
            "Pointers": self.Pointers,
        }
        if self.OutputPath is not None:
            data["OutputPath"] = self.OutputPath
        return data


@dataclass
class Manifest:
    """Complete modules.json structure."""
    Path: str = ""
    TrailerOffset: int = 0
    HeaderOffset: int = 0
    BlobStart: int = 0
    ByteCount: int = 0
    EntryPointId: int = 0
    Flags: int = 0
    ExecArgv: str = ""
    Layout: int = 0
    Modules: List[ManifestModule] = field(default_factory=list)

    @classmethod
    def from_container(cls, container: Container) -> 'Manifest':
        header = container.header
        return cls(
            Path=container.path,
            TrailerOffset=container.trailer_pos,
            HeaderOffset=container.header_offset,
            BlobStart=container.blob_start,
            ByteCount=header.byte_count,
            EntryPointId=header.entry_point_id,
            Flags=header.flags,
            ExecArgv=container.exec_argv,
            Layout=container.layout,
            Modules=[
                ManifestModule.from_record(container, index, record)
                for index, record in container.iter_modules()
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Path": self.Path,
            "TrailerOffset": self.TrailerOffset,
            "HeaderOffset": self.HeaderOffset,
            "BlobStart": self.BlobStart,
            "ByteCount": self.ByteCount,
            "EntryPointId": self.EntryPointId,
            "Flags": self.Flags,
            "ExecArgv": self.ExecArgv,
            "Layout": self.Layout,
            "ModuleCount": len(self.Modules),
            "Modules": [m.to_dict() for m in self.Modules],
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: str) -> None:
        """Save to file."""
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.to_json())
