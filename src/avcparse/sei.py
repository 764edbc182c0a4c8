"""
Supplemental Enhancement Information (H.264 7.3.2.3 and Annex D).

An SEI unit is a sequence of (payload_type, payload_size, payload)
messages. SeiReader only splits the envelope; each payload is decoded
when the caller asks for it, because some payloads (pic_timing) can only
be interpreted once the active SPS is known.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, List, Optional, Tuple, Union

from .bitstream import BitstreamReader, BytesLike
from .context import Context
from .errors import (
    ParamSetNotFoundError,
    RangeViolationError,
    TruncatedError,
    UnresolvedReferenceError,
)
from .nal_extractor import NALUnit
from .sps import HrdParameters, SeqParameterSet, SeqParamSetId

logger = logging.getLogger(__name__)


class PayloadType(IntEnum):
    """SEI payloadType values (Table D-1 and its extensions)."""
    BUFFERING_PERIOD = 0
    PIC_TIMING = 1
    PAN_SCAN_RECT = 2
    FILLER_PAYLOAD = 3
    USER_DATA_REGISTERED_ITU_T_T35 = 4
    USER_DATA_UNREGISTERED = 5
    RECOVERY_POINT = 6
    DEC_REF_PIC_MARKING_REPETITION = 7
    SPARE_PIC = 8
    SCENE_INFO = 9
    SUB_SEQ_INFO = 10
    SUB_SEQ_LAYER_CHARACTERISTICS = 11
    SUB_SEQ_CHARACTERISTICS = 12
    FULL_FRAME_FREEZE = 13
    FULL_FRAME_FREEZE_RELEASE = 14
    FULL_FRAME_SNAPSHOT = 15
    PROGRESSIVE_REFINEMENT_SEGMENT_START = 16
    PROGRESSIVE_REFINEMENT_SEGMENT_END = 17
    MOTION_CONSTRAINED_SLICE_GROUP_SET = 18
    FILM_GRAIN_CHARACTERISTICS = 19
    DEBLOCKING_FILTER_DISPLAY_PREFERENCE = 20
    STEREO_VIDEO_INFO = 21
    POST_FILTER_HINT = 22
    TONE_MAPPING_INFO = 23
    SCALABILITY_INFO = 24
    SUB_PIC_SCALABLE_LAYER = 25
    NON_REQUIRED_LAYER_REP = 26
    PRIORITY_LAYER_INFO = 27
    LAYERS_NOT_PRESENT = 28
    LAYER_DEPENDENCY_CHANGE = 29
    SCALABLE_NESTING = 30
    BASE_LAYER_TEMPORAL_HRD = 31
    QUALITY_LAYER_INTEGRITY_CHECK = 32
    REDUNDANT_PIC_PROPERTY = 33
    TL0_DEP_REP_INDEX = 34
    TL_SWITCHING_POINT = 35
    PARALLEL_DECODING_INFO = 36
    MVC_SCALABLE_NESTING = 37
    VIEW_SCALABILITY_INFO = 38
    MULTIVIEW_SCENE_INFO = 39
    MULTIVIEW_ACQUISITION_INFO = 40
    NON_REQUIRED_VIEW_COMPONENT = 41
    VIEW_DEPENDENCY_CHANGE = 42
    OPERATION_POINTS_NOT_PRESENT = 43
    BASE_VIEW_TEMPORAL_HRD = 44
    FRAME_PACKING_ARRANGEMENT = 45
    MULTIVIEW_VIEW_POSITION = 46
    DISPLAY_ORIENTATION = 47
    MVCD_SCALABLE_NESTING = 48
    MVCD_VIEW_SCALABILITY_INFO = 49
    DEPTH_REPRESENTATION_INFO = 50
    THREE_DIMENSIONAL_REFERENCE_DISPLAYS_INFO = 51
    DEPTH_TIMING = 52
    DEPTH_SAMPLING_INFO = 53
    CONSTRAINED_DEPTH_PARAMETER_SET_IDENTIFIER = 54
    GREEN_METADATA = 56
    MASTERING_DISPLAY_COLOUR_VOLUME = 137
    COLOUR_REMAPPING_INFO = 142
    ALTERNATIVE_TRANSFER_CHARACTERISTICS = 147
    ALTERNATIVE_DEPTH_INFO = 188

    @classmethod
    def from_id(cls, payload_type: int) -> Union["PayloadType", int]:
        """Known types become members; reserved values stay plain ints."""
        try:
            return cls(payload_type)
        except ValueError:
            return payload_type


@dataclass(frozen=True)
class SeiMessage:
    """One sei_message(): its type and the undecoded payload bytes."""
    payload_type: Union[PayloadType, int]
    payload: BytesLike

    def __repr__(self) -> str:
        name = getattr(self.payload_type, "name", self.payload_type)
        return f"SeiMessage({name}, {len(self.payload)} bytes)"

    def reader(self) -> BitstreamReader:
        return BitstreamReader(self.payload)


SeiMessages = List[SeiMessage]


def _read_ff_coded(r: BitstreamReader, name: str) -> int:
    value = 0
    while True:
        byte = r.read_u8(name)
        value += byte
        if byte != 0xFF:
            return value


class SeiReader:
    """
    Iterate the messages of an SEI RBSP.

    Usage:
        for msg in SeiReader.from_nal(nal):
            if msg.payload_type == PayloadType.PIC_TIMING:
                timing = PicTiming.read(msg, sps)
    """

    def __init__(self, rbsp: BytesLike):
        self.rbsp = rbsp

    @classmethod
    def from_nal(cls, nal: NALUnit) -> "SeiReader":
        return cls(nal.rbsp())

    def __iter__(self) -> Iterator[SeiMessage]:
        r = BitstreamReader(self.rbsp)
        while r.has_more_rbsp_data():
            payload_type = _read_ff_coded(r, "last_payload_type_byte")
            payload_size = _read_ff_coded(r, "last_payload_size_byte")
            start = r.byte_offset
            if payload_size > r.bytes_left:
                raise TruncatedError("sei_payload")
            r.skip_bits(payload_size * 8, "sei_payload")
            logger.debug("SEI payload type %d, %d bytes", payload_type, payload_size)
            yield SeiMessage(PayloadType.from_id(payload_type), self.rbsp[start:start + payload_size])
        r.finish_rbsp()

    def messages(self) -> SeiMessages:
        return list(self)


def _check_type(msg: SeiMessage, expected: PayloadType):
    if msg.payload_type != expected:
        raise ValueError(f"expected a {expected.name} message, got {msg!r}")


@dataclass(frozen=True)
class InitialCpbRemoval:
    initial_cpb_removal_delay: int
    initial_cpb_removal_delay_offset: int


def _read_initial_delays(r: BitstreamReader, hrd: Optional[HrdParameters],
                         ) -> Optional[Tuple[InitialCpbRemoval, ...]]:
    if hrd is None:
        return None
    length = hrd.initial_cpb_removal_delay_length_minus1 + 1
    return tuple(
        InitialCpbRemoval(
            r.read_bits(length, "initial_cpb_removal_delay"),
            r.read_bits(length, "initial_cpb_removal_delay_offset"),
        )
        for _ in range(hrd.cpb_cnt)
    )


@dataclass(frozen=True)
class BufferingPeriod:
    """buffering_period() (D.1.2). One delay pair per CPB of each present HRD."""
    seq_parameter_set_id: SeqParamSetId
    nal_hrd: Optional[Tuple[InitialCpbRemoval, ...]]
    vcl_hrd: Optional[Tuple[InitialCpbRemoval, ...]]

    @classmethod
    def read(cls, msg: SeiMessage, ctx: Context) -> "BufferingPeriod":
        _check_type(msg, PayloadType.BUFFERING_PERIOD)
        r = msg.reader()
        sps_id = SeqParamSetId.read(r)
        try:
            sps = ctx.sps_by_id(sps_id)
        except ParamSetNotFoundError:
            raise UnresolvedReferenceError("seq_parameter_set_id", sps_id.id) from None
        vui = sps.vui_parameters
        nal_hrd = vui.nal_hrd_parameters if vui else None
        vcl_hrd = vui.vcl_hrd_parameters if vui else None
        period = cls(sps_id, _read_initial_delays(r, nal_hrd), _read_initial_delays(r, vcl_hrd))
        r.finish_sei_payload()
        return period


class PicStruct(IntEnum):
    """pic_struct (Table D-1)."""
    FRAME = 0
    TOP_FIELD = 1
    BOTTOM_FIELD = 2
    TOP_BOTTOM = 3
    BOTTOM_TOP = 4
    TOP_BOTTOM_TOP = 5
    BOTTOM_TOP_BOTTOM = 6
    FRAME_DOUBLING = 7
    FRAME_TRIPLING = 8

    @property
    def num_clock_ts(self) -> int:
        return _NUM_CLOCK_TS[self]


_NUM_CLOCK_TS = (1, 1, 1, 2, 2, 3, 3, 2, 3)


class CtType(IntEnum):
    PROGRESSIVE = 0
    INTERLACED = 1
    UNKNOWN = 2
    RESERVED = 3


class CountingType(Enum):
    NO_DROPPING_NO_OFFSET = 0
    NO_DROPPING = 1
    DROPPING_INDIVIDUAL_ZERO = 2
    DROPPING_INDIVIDUAL_MAX = 3
    DROPPING_TWO_LOWEST = 4
    DROPPING_INDIVIDUAL = 5
    DROPPING = 6
    RESERVED = 7

    @classmethod
    def from_id(cls, counting_type: int) -> "CountingType":
        return cls(min(counting_type, 7))


@dataclass(frozen=True)
class ClockTimestamp:
    ct_type: CtType
    nuit_field_based_flag: bool
    counting_type: CountingType
    full_timestamp_flag: bool
    discontinuity_flag: bool
    cnt_dropped_flag: bool
    n_frames: int
    seconds_value: Optional[int] = None
    minutes_value: Optional[int] = None
    hours_value: Optional[int] = None
    time_offset: Optional[int] = None

    @classmethod
    def read(cls, r: BitstreamReader, time_offset_length: int) -> "ClockTimestamp":
        ct_type = CtType(r.read_bits(2, "ct_type"))
        nuit_field_based_flag = r.read_flag("nuit_field_based_flag")
        counting_type = CountingType.from_id(r.read_bits(5, "counting_type"))
        full_timestamp_flag = r.read_flag("full_timestamp_flag")
        discontinuity_flag = r.read_flag("discontinuity_flag")
        cnt_dropped_flag = r.read_flag("cnt_dropped_flag")
        n_frames = r.read_u8("n_frames")

        seconds = minutes = hours = None
        if full_timestamp_flag:
            seconds = r.read_bits(6, "seconds_value")
            minutes = r.read_bits(6, "minutes_value")
            hours = r.read_bits(5, "hours_value")
        elif r.read_flag("seconds_flag"):
            seconds = r.read_bits(6, "seconds_value")
            if r.read_flag("minutes_flag"):
                minutes = r.read_bits(6, "minutes_value")
                if r.read_flag("hours_flag"):
                    hours = r.read_bits(5, "hours_value")
        if seconds is not None and seconds > 59:
            raise RangeViolationError("seconds_value", seconds)
        if minutes is not None and minutes > 59:
            raise RangeViolationError("minutes_value", minutes)
        if hours is not None and hours > 23:
            raise RangeViolationError("hours_value", hours)

        time_offset = None
        if time_offset_length:
            time_offset = r.read_signed(time_offset_length, "time_offset")
        return cls(
            ct_type=ct_type,
            nuit_field_based_flag=nuit_field_based_flag,
            counting_type=counting_type,
            full_timestamp_flag=full_timestamp_flag,
            discontinuity_flag=discontinuity_flag,
            cnt_dropped_flag=cnt_dropped_flag,
            n_frames=n_frames,
            seconds_value=seconds,
            minutes_value=minutes,
            hours_value=hours,
            time_offset=time_offset,
        )


@dataclass(frozen=True)
class PicTimingDelays:
    cpb_removal_delay: int
    dpb_output_delay: int


@dataclass(frozen=True)
class PicTiming:
    """pic_timing() (D.1.3)."""
    delays: Optional[PicTimingDelays]
    pic_struct: Optional[PicStruct]
    clock_timestamps: Tuple[Optional[ClockTimestamp], ...] = ()

    @classmethod
    def read(cls, msg: SeiMessage, sps: SeqParameterSet) -> "PicTiming":
        """
        Decode against the SPS that is active for the picture. The
        caller usually finds it by holding the message until the next
        slice header has been parsed.
        """
        _check_type(msg, PayloadType.PIC_TIMING)
        r = msg.reader()
        vui = sps.vui_parameters
        if vui is None:
            r.finish_sei_payload()
            return cls(None, None)

        delays = None
        hrd = vui.nal_hrd_parameters or vui.vcl_hrd_parameters
        if hrd is not None:
            delays = PicTimingDelays(
                r.read_bits(hrd.cpb_removal_delay_length_minus1 + 1, "cpb_removal_delay"),
                r.read_bits(hrd.dpb_output_delay_length_minus1 + 1, "dpb_output_delay"),
            )

        if not vui.pic_struct_present_flag:
            r.finish_sei_payload()
            return cls(delays, None)
        pic_struct_id = r.read_bits(4, "pic_struct")
        if pic_struct_id > PicStruct.FRAME_TRIPLING:
            raise RangeViolationError("pic_struct", pic_struct_id)
        pic_struct = PicStruct(pic_struct_id)
        time_offset_length = hrd.time_offset_length if hrd is not None else 24
        timestamps = []
        for _ in range(pic_struct.num_clock_ts):
            if r.read_flag("clock_timestamp_flag"):
                timestamps.append(ClockTimestamp.read(r, time_offset_length))
            else:
                timestamps.append(None)
        r.finish_sei_payload()
        return cls(delays, pic_struct, tuple(timestamps))


@dataclass(frozen=True)
class UserDataRegisteredItuTT35:
    """user_data_registered_itu_t_t35() (D.1.5)."""
    itu_t_t35_country_code: int
    itu_t_t35_country_code_extension_byte: Optional[int]
    payload: BytesLike

    @classmethod
    def read(cls, msg: SeiMessage) -> "UserDataRegisteredItuTT35":
        _check_type(msg, PayloadType.USER_DATA_REGISTERED_ITU_T_T35)
        data = msg.payload
        if len(data) < 1:
            raise TruncatedError("itu_t_t35_country_code")
        country_code = data[0]
        extension = None
        offset = 1
        if country_code == 0xFF:
            if len(data) < 2:
                raise TruncatedError("itu_t_t35_country_code_extension_byte")
            extension = data[1]
            offset = 2
        return cls(country_code, extension, data[offset:])

    @property
    def country_name(self) -> Optional[str]:
        if self.itu_t_t35_country_code_extension_byte is not None:
            return None
        return T35_COUNTRY_NAMES.get(self.itu_t_t35_country_code)


# ITU-T T.35 Annex A. Germany and Yemen each have two codes.
T35_COUNTRY_NAMES = {
    0x00: "Japan",
    0x01: "Albania",
    0x02: "Algeria",
    0x03: "American Samoa",
    0x04: "Germany",
    0x05: "Anguilla",
    0x06: "Antigua and Barbuda",
    0x07: "Argentina",
    0x08: "Ascension",
    0x09: "Australia",
    0x0A: "Austria",
    0x0B: "Bahamas",
    0x0C: "Bahrain",
    0x0D: "Bangladesh",
    0x0E: "Barbados",
    0x0F: "Belgium",
    0x10: "Belize",
    0x11: "Benin",
    0x12: "Bermudas",
    0x13: "Bhutan",
    0x14: "Bolivia",
    0x15: "Botswana",
    0x16: "Brazil",
    0x17: "British Antarctic Territory",
    0x18: "British Indian Ocean Territory",
    0x19: "British Virgin Islands",
    0x1A: "Brunei Darussalam",
    0x1B: "Bulgaria",
    0x1C: "Myanmar",
    0x1D: "Burundi",
    0x1E: "Byelorussia",
    0x1F: "Cameroon",
    0x20: "Canada",
    0x21: "Cape Verde",
    0x22: "Cayman Islands",
    0x23: "Central African Republic",
    0x24: "Chad",
    0x25: "Chile",
    0x26: "China",
    0x27: "Colombia",
    0x28: "Comoros",
    0x29: "Congo",
    0x2A: "Cook Islands",
    0x2B: "Costa Rica",
    0x2C: "Cuba",
    0x2D: "Cyprus",
    0x2E: "Czech and Slovak Federal Republic",
    0x2F: "Cambodia",
    0x30: "Democratic People's Republic of Korea",
    0x31: "Denmark",
    0x32: "Djibouti",
    0x33: "Dominican Republic",
    0x34: "Dominica",
    0x35: "Ecuador",
    0x36: "Egypt",
    0x37: "El Salvador",
    0x38: "Equatorial Guinea",
    0x39: "Ethiopia",
    0x3A: "Falkland Islands",
    0x3B: "Fiji",
    0x3C: "Finland",
    0x3D: "France",
    0x3E: "French Polynesia",
    0x3F: "French Southern and Antarctic Lands",
    0x40: "Gabon",
    0x41: "Gambia",
    0x42: "Germany",
    0x43: "Angola",
    0x44: "Ghana",
    0x45: "Gibraltar",
    0x46: "Greece",
    0x47: "Grenada",
    0x48: "Guam",
    0x49: "Guatemala",
    0x4A: "Guernsey",
    0x4B: "Guinea",
    0x4C: "Guinea Bissau",
    0x4D: "Guyana",
    0x4E: "Haiti",
    0x4F: "Honduras",
    0x50: "Hong Kong",
    0x51: "Hungary",
    0x52: "Iceland",
    0x53: "India",
    0x54: "Indonesia",
    0x55: "Iran",
    0x56: "Iraq",
    0x57: "Ireland",
    0x58: "Israel",
    0x59: "Italy",
    0x5A: "Côte d'Ivoire",
    0x5B: "Jamaica",
    0x5C: "Afghanistan",
    0x5D: "Jersey",
    0x5E: "Jordan",
    0x5F: "Kenya",
    0x60: "Kiribati",
    0x61: "Republic of Korea",
    0x62: "Kuwait",
    0x63: "Lao People's Democratic Republic",
    0x64: "Lebanon",
    0x65: "Lesotho",
    0x66: "Liberia",
    0x67: "Libya",
    0x68: "Liechtenstein",
    0x69: "Luxembourg",
    0x6A: "Macau",
    0x6B: "Madagascar",
    0x6C: "Malaysia",
    0x6D: "Malawi",
    0x6E: "Maldives",
    0x6F: "Mali",
    0x70: "Malta",
    0x71: "Mauritania",
    0x72: "Mauritius",
    0x73: "Mexico",
    0x74: "Monaco",
    0x75: "Mongolia",
    0x76: "Montserrat",
    0x77: "Morocco",
    0x78: "Mozambique",
    0x79: "Nauru",
    0x7A: "Nepal",
    0x7B: "Netherlands",
    0x7C: "Netherlands Antilles",
    0x7D: "New Caledonia",
    0x7E: "New Zealand",
    0x7F: "Nicaragua",
    0x80: "Niger",
    0x81: "Nigeria",
    0x82: "Norway",
    0x83: "Oman",
    0x84: "Pakistan",
    0x85: "Panama",
    0x86: "Papua New Guinea",
    0x87: "Paraguay",
    0x88: "Peru",
    0x89: "Philippines",
    0x8A: "Poland",
    0x8B: "Portugal",
    0x8C: "Puerto Rico",
    0x8D: "Qatar",
    0x8E: "Romania",
    0x8F: "Rwanda",
    0x90: "Saint Kitts and Nevis",
    0x91: "Saint Croix",
    0x92: "Saint Helena and Ascension",
    0x93: "Saint Lucia",
    0x94: "San Marino",
    0x95: "Saint Thomas",
    0x96: "Sao Tome and Principe",
    0x97: "Saint Vincent and the Grenadines",
    0x98: "Saudi Arabia",
    0x99: "Senegal",
    0x9A: "Seychelles",
    0x9B: "Sierra Leone",
    0x9C: "Singapore",
    0x9D: "Solomon Islands",
    0x9E: "Somalia",
    0x9F: "South Africa",
    0xA0: "Spain",
    0xA1: "Sri Lanka",
    0xA2: "Sudan",
    0xA3: "Suriname",
    0xA4: "Swaziland",
    0xA5: "Sweden",
    0xA6: "Switzerland",
    0xA7: "Syria",
    0xA8: "Tanzania",
    0xA9: "Thailand",
    0xAA: "Togo",
    0xAB: "Tonga",
    0xAC: "Trinidad and Tobago",
    0xAD: "Tunisia",
    0xAE: "Turkey",
    0xAF: "Turks and Caicos Islands",
    0xB0: "Tuvalu",
    0xB1: "Uganda",
    0xB2: "Ukraine",
    0xB3: "United Arab Emirates",
    0xB4: "United Kingdom",
    0xB5: "United States",
    0xB6: "Burkina Faso",
    0xB7: "Uruguay",
    0xB8: "USSR",
    0xB9: "Vanuatu",
    0xBA: "Vatican City State",
    0xBB: "Venezuela",
    0xBC: "Viet Nam",
    0xBD: "Wallis and Futuna",
    0xBE: "Western Samoa",
    0xBF: "Yemen",
    0xC0: "Yemen",
    0xC1: "Yugoslavia",
    0xC2: "Zaire",
    0xC3: "Zambia",
    0xC4: "Zimbabwe",
}


@dataclass(frozen=True)
class UserDataUnregistered:
    """user_data_unregistered() (D.1.6): a 16-byte UUID and opaque data."""
    uuid_iso_iec_11578: bytes
    payload: BytesLike

    @classmethod
    def read(cls, msg: SeiMessage) -> "UserDataUnregistered":
        _check_type(msg, PayloadType.USER_DATA_UNREGISTERED)
        data = msg.payload
        if len(data) < 16:
            raise TruncatedError("uuid_iso_iec_11578")
        return cls(bytes(data[:16]), data[16:])

    @property
    def uuid(self) -> uuid.UUID:
        return uuid.UUID(bytes=self.uuid_iso_iec_11578)
