"""
Logic Analyzer Protocol Decoders

Decodes asynchronous serial protocols (UART, 1-Wire) from captured
multi-channel logic samples.

Modules:
    capture: Immutable sample buffer (SampleBuffer)
    channels: Role to channel assignments (ChannelRole, ChannelMap)
    edges: Lazy edge scanning
    timing: Bit period / baud rate estimation
    decoder: UART framing and frame decoder (FramingConfig, UartDecoder)
    onewire: 1-Wire link layer decoder (OneWireDecoder)
    session: Cancellable decode runs (DecodeSession, CancellationToken)
    symbols: Decode results (DataSymbol, LineEvent, DecodeResult)
    plotting: Signal visualization (DigitalPlot, plot_digital)
"""

from .capture import SampleBuffer

from .channels import ChannelMap, ChannelRole

from .config import DecoderSettings, DEFAULT_SETTINGS

from .errors import (
    DecodeError,
    ConfigError,
    DuplicateAssignment,
    OutOfRange,
    InvalidFraming,
    SampleRateError,
    Cancelled,
)

from .edges import Edge, scan_edges

from .timing import BitTiming, estimate_bit_timing

from .symbols import (
    Annotation,
    BusReset,
    DataSymbol,
    DecodeResult,
    DecodeStats,
    LineEvent,
)

from .decoder import (
    FramingConfig,
    Parity,
    ProtocolDecoder,
    StopBits,
    UartDecoder,
)

from .onewire import OneWireDecoder

from .session import CancellationToken, DecodeSession, decode

from .plotting import (
    DigitalPlot,
    plot_digital,
    Style,
    DEFAULT_STYLE,
)

__all__ = [
    # Capture
    'SampleBuffer',
    'ChannelMap',
    'ChannelRole',
    'DecoderSettings',
    'DEFAULT_SETTINGS',
    # Errors
    'DecodeError',
    'ConfigError',
    'DuplicateAssignment',
    'OutOfRange',
    'InvalidFraming',
    'SampleRateError',
    'Cancelled',
    # Decoding
    'Edge',
    'scan_edges',
    'BitTiming',
    'estimate_bit_timing',
    'FramingConfig',
    'Parity',
    'StopBits',
    'ProtocolDecoder',
    'UartDecoder',
    'OneWireDecoder',
    'CancellationToken',
    'DecodeSession',
    'decode',
    # Results
    'Annotation',
    'BusReset',
    'DataSymbol',
    'DecodeResult',
    'DecodeStats',
    'LineEvent',
    # Plotting
    'DigitalPlot',
    'plot_digital',
    'Style',
    'DEFAULT_STYLE',
]

__version__ = '0.1.0'
