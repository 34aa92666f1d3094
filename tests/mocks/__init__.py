from .clock import FakeClock
from .mock_emitter import MockEmitter
