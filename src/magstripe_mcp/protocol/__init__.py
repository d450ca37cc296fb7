"""Protocol layer: frame envelopes, LRC, command builders, and response codes."""

from .framing import wrap_frame, chunk_frame, extract_payload, build_report, report_value
from .commands import MagtekCommand, MagtekProperty, IDTechCommand, IDTechProperty
from .parser import MagtekResponseCode, IDTechResponseCode, DeviceState, decode_state
