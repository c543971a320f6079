"""
Decode Session

Runs a protocol decoder over every configured line of a capture:

    1. validate the channel map (ConfigError, nothing scanned yet)
    2. estimate the bit period of each data line
    3. decode the data lines and collect auxiliary line events
    4. merge everything into one timestamp ordered DecodeResult

Usage:
    token = CancellationToken()
    session = DecodeSession(buffer, channel_map, FramingConfig(parity="odd"),
                            progress=print, cancel_token=token)
    future = session.start()        # or session.run() in the current thread
    ...
    token.cancel()                  # future.result() raises Cancelled
"""

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Union
import heapq
import logging
import threading

from .capture import SampleBuffer
from .channels import ChannelMap, ChannelRole
from .config import DEFAULT_SETTINGS, DecoderSettings
from .decoder import FramingConfig, ProtocolDecoder, UartDecoder, decode_line_events
from .edges import Checkpoint, scan_edges
from .errors import Cancelled
from .symbols import DataSymbol, DecodeResult, DecodeStats, DecodedSymbol
from .timing import BitTiming, estimate_bit_timing

log = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class CancellationToken:
    """Cooperative cancellation flag, safe to set from any thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, position: Optional[int] = None):
        if self._event.is_set():
            raise Cancelled(position)


class _Progress:
    """
    Folds the completion of several work units (one per scanned line)
    into a single monotonic fraction, reported in steps of at least
    `step`. Nothing is reported once closed.

    The callback runs outside the state lock. While one line is inside
    the callback, other lines record their fraction and carry on; the
    next report picks it up.
    """

    def __init__(self, callback: Optional[ProgressCallback], units: int, step: float):
        self._callback = callback
        self._fractions = [0.0] * max(units, 1)
        self._step = step
        self._reported = 0.0
        self._closed = False
        self._lock = threading.Lock()
        self._reporting = threading.Lock()

    def _due(self) -> Optional[float]:
        overall = sum(self._fractions) / len(self._fractions)
        if self._closed or overall - self._reported < self._step or overall >= 1.0:
            return None
        return overall

    def update(self, unit: int, fraction: float):
        if self._callback is None:
            return
        with self._lock:
            self._fractions[unit] = max(self._fractions[unit], min(fraction, 1.0))
            if self._due() is None:
                return
        if not self._reporting.acquire(blocking=False):
            return
        try:
            with self._lock:
                overall = self._due()
                if overall is None:
                    return
                self._reported = overall
            self._callback(overall)
        finally:
            self._reporting.release()

    def finish(self):
        with self._reporting:
            with self._lock:
                if self._closed:
                    return
                self._closed = True
            if self._callback is not None:
                self._callback(1.0)

    def close(self):
        with self._lock:
            self._closed = True


class DecodeSession:
    """
    One decode run over an immutable SampleBuffer.

    Args:
        buffer: Captured samples
        channel_map: Role to channel assignments
        decoder: A ProtocolDecoder, or a FramingConfig for UART decoding
            (default: 8N1)
        settings: Thresholds and scheduling options
        progress: Called with the completion fraction (0..1]
        cancel_token: Polled every settings.cancel_check_interval samples
    """

    def __init__(
        self,
        buffer: SampleBuffer,
        channel_map: ChannelMap,
        decoder: Union[ProtocolDecoder, FramingConfig, None] = None,
        settings: Optional[DecoderSettings] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.buffer = buffer
        self.channel_map = channel_map
        self.settings = settings or DEFAULT_SETTINGS
        if decoder is None or isinstance(decoder, FramingConfig):
            decoder = UartDecoder(decoder)
        self.decoder = decoder
        self.progress = progress
        self.cancel_token = cancel_token or CancellationToken()
        self._progress = _Progress(None, 0, self.settings.progress_step)

    def cancel(self):
        self.cancel_token.cancel()

    # =========================================================================
    # Execution
    # =========================================================================

    def start(self) -> Future:
        """Run in a background thread; the future yields the DecodeResult."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="decode-session")
        try:
            return self.submit(executor)
        finally:
            executor.shutdown(wait=False)

    def submit(self, executor: Executor) -> Future:
        return executor.submit(self.run)

    def run(self) -> DecodeResult:
        """
        Decode all configured lines.

        Raises:
            ConfigError: The channel map doesn't fit the buffer
            Cancelled: The cancel token was set during the run
        """
        buffer = self.buffer
        self.channel_map.validate(buffer.channel_width)
        data_roles = self.channel_map.data_roles()
        aux_roles = self.channel_map.aux_roles()

        timing_units = len(data_roles) if self.decoder.needs_bit_timing else 0
        self._progress = _Progress(self.progress, timing_units + len(data_roles) + len(aux_roles),
                                   self.settings.progress_step)

        log.info("Decoding %s with %s: data %s, aux %s",
                 buffer, type(self.decoder).__name__,
                 [r.label for r in data_roles], [r.label for r in aux_roles])
        try:
            self.cancel_token.raise_if_cancelled(buffer.first_index)
            if self.decoder.needs_bit_timing:
                timings = self._estimate_timing(data_roles)
                shared = next((t for t in timings.values() if not t.failed), None)
                bit_period = shared.bit_period_samples if shared else 0
                failed = tuple(role for role, t in timings.items() if t.failed)
            else:
                bit_period = self.decoder.nominal_bit_period(buffer)
                failed = ()

            decoded_roles = [role for role in data_roles if role not in failed]
            tasks = [self._data_task(timing_units + i, role, bit_period)
                     for i, role in enumerate(data_roles) if role in decoded_roles]
            tasks += [self._aux_task(timing_units + len(data_roles) + i, role)
                      for i, role in enumerate(aux_roles)]
            per_line = self._run_tasks(tasks)
        except Cancelled as exc:
            self._progress.close()
            log.info("Decode cancelled at sample %s", exc.position)
            raise

        result = self._aggregate(per_line, bit_period, failed)
        self._progress.finish()
        for symbol in result.errors():
            log.debug("%s at %s", symbol.event, result.time_str(symbol))
        log.info("Decoded %d symbols, %d errors, %.1f baud",
                 result.stats.symbol_count, result.stats.error_count, result.stats.baud_rate)
        return result

    # =========================================================================
    # Steps
    # =========================================================================

    def _checkpoint(self, unit: int) -> Checkpoint:
        first = self.buffer.first_index
        span = max(1, self.buffer.last_index - first)

        def checkpoint(position: int):
            self.cancel_token.raise_if_cancelled(position)
            self._progress.update(unit, (position - first) / span)

        return checkpoint

    def _estimate_timing(self, data_roles: list[ChannelRole]) -> dict[ChannelRole, BitTiming]:
        timings = {}
        for unit, role in enumerate(data_roles):
            edges = scan_edges(self.buffer, self.channel_map.resolve(role),
                               chunk_size=self.settings.cancel_check_interval,
                               checkpoint=self._checkpoint(unit))
            timing = estimate_bit_timing(edges, self.buffer.sample_rate,
                                         min_recurrence=self.settings.min_recurrence,
                                         low_resolution_threshold=self.settings.low_resolution_threshold)
            if timing.failed:
                log.warning("Baud rate calculation failed for %s (%d edges), line skipped",
                            role.label, timing.edge_count)
            elif timing.low_resolution:
                log.warning("%s: only %d samples per bit, the baud rate may be wrong; "
                            "use a higher sample rate", role.label, timing.bit_period_samples)
            timings[role] = timing
        return timings

    def _data_task(self, unit: int, role: ChannelRole, bit_period: int) -> Callable[[], list[DecodedSymbol]]:
        bit = self.channel_map.resolve(role)
        checkpoint = self._checkpoint(unit)
        return lambda: self.decoder.decode_line(self.buffer, bit, role, bit_period, checkpoint,
                                                chunk_size=self.settings.cancel_check_interval)

    def _aux_task(self, unit: int, role: ChannelRole) -> Callable[[], list[DecodedSymbol]]:
        bit = self.channel_map.resolve(role)
        checkpoint = self._checkpoint(unit)
        return lambda: decode_line_events(self.buffer, bit, role,
                                          chunk_size=self.settings.cancel_check_interval,
                                          checkpoint=checkpoint)

    def _run_tasks(self, tasks: list) -> list[list[DecodedSymbol]]:
        if not self.settings.parallel_lines or len(tasks) < 2:
            return [task() for task in tasks]

        # Lines are independent once the bit period is known
        workers = self.settings.max_workers or len(tasks)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="decode-line") as pool:
            futures = [pool.submit(task) for task in tasks]
            try:
                return [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    def _aggregate(self, per_line: list[list[DecodedSymbol]], bit_period: int,
                   failed: tuple[ChannelRole, ...]) -> DecodeResult:
        # Stable merge: equal timestamps keep the canonical line order
        symbols = tuple(heapq.merge(*per_line, key=lambda s: s.timestamp))

        data = [s for s in symbols if isinstance(s, DataSymbol)]
        stats = DecodeStats(
            symbol_count=len(data),
            error_count=sum(1 for s in symbols if s.has_error),
            bit_period_samples=bit_period,
            sample_rate=self.buffer.sample_rate,
            low_resolution_warning=(self.decoder.needs_bit_timing
                                    and 0 < bit_period < self.settings.low_resolution_threshold),
            timing_failed_lines=failed,
        )
        return DecodeResult(
            symbols=symbols,
            stats=stats,
            channel_map=self.channel_map,
            start_of_decode=self.buffer.first_index,
            has_timing_data=self.buffer.has_timing_data,
        )


def decode(
    buffer: SampleBuffer,
    channel_map: ChannelMap,
    decoder: Union[ProtocolDecoder, FramingConfig, None] = None,
    **kwargs,
) -> DecodeResult:
    """Run a DecodeSession in the current thread."""
    return DecodeSession(buffer, channel_map, decoder, **kwargs).run()
