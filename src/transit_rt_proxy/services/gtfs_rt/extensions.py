"""GTFS-RT extensions used by the subway feeds and the corrected output.

The extension messages are described in a FileDescriptorProto and added to
the default descriptor pool at import time, next to the definitions shipped
with ``gtfs-realtime-bindings``:

* ``nyct_feed_header`` (1001 on ``FeedHeader``): trip replacement periods,
* ``nyct_trip_descriptor`` (1001 on ``TripDescriptor``): train id,
* ``trip_update_headsign`` (1000 on ``TripUpdate``): trip headsign,
* ``stop_time_update_headsign`` (1000 on ``StopTimeUpdate``): stop headsign.

Access them through ``message.Extensions[...]`` with the descriptors below.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.transit import gtfs_realtime_pb2

FILE_NAME = "transit_rt_proxy/gtfs_realtime_extensions.proto"
PACKAGE = "transit_realtime"

_OPTIONAL = descriptor_pb2.FieldDescriptorProto.LABEL_OPTIONAL
_REPEATED = descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED
_STRING = descriptor_pb2.FieldDescriptorProto.TYPE_STRING
_BOOL = descriptor_pb2.FieldDescriptorProto.TYPE_BOOL
_UINT32 = descriptor_pb2.FieldDescriptorProto.TYPE_UINT32
_MESSAGE = descriptor_pb2.FieldDescriptorProto.TYPE_MESSAGE


def _message(
    proto: descriptor_pb2.FileDescriptorProto,
    name: str,
    fields: list[tuple[str, int, int, int, str]],
) -> None:
    message = proto.message_type.add(name=name)
    for field_name, number, label, field_type, type_name in fields:
        field = message.field.add(name=field_name, number=number, label=label, type=field_type)
        if type_name:
            field.type_name = type_name


def _extension(
    proto: descriptor_pb2.FileDescriptorProto,
    name: str,
    number: int,
    message: str,
    extendee: str,
) -> None:
    proto.extension.add(
        name=name,
        number=number,
        label=_OPTIONAL,
        type=_MESSAGE,
        type_name=f".{PACKAGE}.{message}",
        extendee=f".{PACKAGE}.{extendee}",
    )


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Describe the extension messages as a proto2 file in ``transit_realtime``."""
    proto = descriptor_pb2.FileDescriptorProto(name=FILE_NAME, package=PACKAGE, syntax="proto2")
    proto.dependency.append(gtfs_realtime_pb2.DESCRIPTOR.name)

    _message(
        proto,
        "TripReplacementPeriod",
        [
            ("route_id", 1, _OPTIONAL, _STRING, ""),
            ("replacement_period", 2, _OPTIONAL, _MESSAGE, f".{PACKAGE}.TimeRange"),
        ],
    )
    _message(
        proto,
        "NyctFeedHeader",
        [
            ("nyct_subway_version", 1, _OPTIONAL, _STRING, ""),
            ("trip_replacement_period", 2, _REPEATED, _MESSAGE, f".{PACKAGE}.TripReplacementPeriod"),
        ],
    )
    _message(
        proto,
        "NyctTripDescriptor",
        [
            ("train_id", 1, _OPTIONAL, _STRING, ""),
            ("is_assigned", 2, _OPTIONAL, _BOOL, ""),
            ("direction", 3, _OPTIONAL, _UINT32, ""),
        ],
    )
    _message(proto, "TripUpdateHeadsign", [("trip_headsign", 3, _OPTIONAL, _STRING, "")])
    _message(proto, "StopTimeUpdateHeadsign", [("stop_headsign", 1, _OPTIONAL, _STRING, "")])

    _extension(proto, "nyct_feed_header", 1001, "NyctFeedHeader", "FeedHeader")
    _extension(proto, "nyct_trip_descriptor", 1001, "NyctTripDescriptor", "TripDescriptor")
    _extension(proto, "trip_update_headsign", 1000, "TripUpdateHeadsign", "TripUpdate")
    _extension(
        proto,
        "stop_time_update_headsign",
        1000,
        "StopTimeUpdateHeadsign",
        "TripUpdate.StopTimeUpdate",
    )
    return proto


def _register() -> descriptor_pool.DescriptorPool:
    pool = descriptor_pool.Default()
    try:
        pool.FindFileByName(FILE_NAME)
    except KeyError:
        pool.AddSerializedFile(build_file_descriptor().SerializeToString())
        message_factory.GetMessageClassesForFiles([FILE_NAME], pool)
    return pool


_pool = _register()

nyct_feed_header = _pool.FindExtensionByName(f"{PACKAGE}.nyct_feed_header")
nyct_trip_descriptor = _pool.FindExtensionByName(f"{PACKAGE}.nyct_trip_descriptor")
trip_update_headsign = _pool.FindExtensionByName(f"{PACKAGE}.trip_update_headsign")
stop_time_update_headsign = _pool.FindExtensionByName(f"{PACKAGE}.stop_time_update_headsign")
