"""
Digital Signal Plotting Module

Draws the channels of a SampleBuffer with decoded symbol annotations.
"""

import matplotlib.pyplot as plt
import numpy as np
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from .capture import SampleBuffer
from .channels import ChannelMap


@runtime_checkable
class AnnotationLike(Protocol):
    """Protocol for annotation objects."""
    channel: int
    start: float
    end: float
    row: str
    @property
    def label(self) -> str: ...


@dataclass
class Style:
    """Visual styling configuration."""
    # Line styles
    signal_width: float = 1.5
    baseline_width: float = 1.0
    baseline_color: str = "0.4"
    baseline_dash: tuple = (4, 1, 0.2, 1)

    # Font sizes
    font_label: float = 12
    font_annotation: float = 7.0
    font_axis: float = 12
    font_title: float = 14

    # Colors
    signal_color: str = "black"
    error_color: str = "red"
    event_color: str = "0.35"
    background: str = "white"

    # DPI for export
    dpi: int = 150


DEFAULT_STYLE = Style()


class DigitalPlot:
    """
    Digital signal plotter with annotation support.

    Usage:
        plot = DigitalPlot(buffer, channel_map)
        plot.add_annotations(result.to_annotations())
        fig, ax = plot.render(show=False)
    """

    TIME_SCALES = {
        "s": (1.0, "Time (s)"),
        "ms": (1e3, "Time (ms)"),
        "us": (1e6, "Time (µs)"),
        "samples": (1.0, "Sample"),
    }

    def __init__(
        self,
        buffer: SampleBuffer,
        channel_map: Optional[ChannelMap] = None,
        style: Optional[Style] = None,
    ):
        self.buffer = buffer
        self.channel_map = channel_map or ChannelMap()
        self.style = style or DEFAULT_STYLE
        self.annotations: list[AnnotationLike] = []

    def add_annotations(self, annotations: list[AnnotationLike]) -> "DigitalPlot":
        """Add annotations to the plot. Returns self for chaining."""
        self.annotations.extend(annotations)
        return self

    def default_channels(self) -> list[int]:
        """Assigned channels in role order, all channels if none are."""
        assigned = [self.channel_map.resolve(role) for role in self.channel_map.roles()]
        return assigned or list(range(self.buffer.channel_width))

    def render(
        self,
        channel_order: Optional[list[int]] = None,
        time_unit: str = "ms",
        title: str = "Digital Capture",
        figsize: tuple[float, float] = (12, 6),
        show: bool = True,
    ) -> tuple[plt.Figure, plt.Axes]:
        """
        Render the digital signal plot.
        """
        if channel_order is None:
            channel_order = self.default_channels()
        n_channels = len(channel_order)

        ann_by_ch = {ch: [] for ch in channel_order}
        for ann in self.annotations:
            if ann.channel in ann_by_ch:
                ann_by_ch[ann.channel].append(ann)

        # Without timing data the x axis can only show sample indices
        if not self.buffer.has_timing_data:
            time_unit = "samples"
        scale, xlabel = self.TIME_SCALES.get(time_unit, (1.0, "Time (s)"))
        t = self.buffer.times() * scale
        t_min, t_max = (t[0], t[-1]) if len(t) else (0.0, 1.0)

        fig, ax = plt.subplots(figsize=figsize, dpi=self.style.dpi, layout="constrained")

        # Each channel gets 1 unit of height, signal goes from y to y+0.8
        signal_height = 0.8

        for display_idx, ch in enumerate(channel_order):
            y_base = n_channels - 1 - display_idx
            self._draw_channel(ax, t, ch, display_idx, y_base, signal_height,
                               t_min, t_max, ann_by_ch[ch], scale)

        ax.set_xlim(t_min, t_max if t_max > t_min else t_min + 1)
        ax.set_ylim(-0.5, n_channels - 0.5 + signal_height)

        yticks = [(n_channels - 1 - i) + signal_height / 2 for i in range(n_channels)]
        ax.set_yticks(yticks)
        ax.set_yticklabels([self.channel_map.label_for(ch) for ch in channel_order],
                           fontsize=self.style.font_label, color=self.style.signal_color)

        ax.set_xlabel(xlabel, fontsize=self.style.font_axis, color=self.style.signal_color)
        ax.tick_params(axis='x', labelsize=self.style.font_axis,
                       labelcolor=self.style.signal_color, color=self.style.signal_color)
        ax.set_title(title, fontsize=self.style.font_title, color=self.style.signal_color)

        ax.spines[["top", "left", "right"]].set_visible(False)
        ax.spines["bottom"].set_color(self.style.signal_color)
        ax.tick_params(axis='y', length=0)

        ax.set_facecolor(self.style.background)
        fig.patch.set_facecolor(self.style.background)

        if show:
            plt.show()

        return fig, ax

    def _draw_channel(
        self,
        ax: plt.Axes,
        time: np.ndarray,
        ch: int,
        ch_index: int,
        y_base: float,
        signal_height: float,
        t_min: float,
        t_max: float,
        annotations: list,
        time_scale: float,
    ):
        """Draw a single channel with its signal and annotations."""
        s = self.style

        # Offset odd rows by half the first dash
        dash_offset = (s.baseline_dash[0] / 2) if (ch_index % 2 == 1) else 0
        ax.hlines(
            y_base, t_min, t_max,
            colors=s.baseline_color,
            linewidths=s.baseline_width,
            linestyles=(dash_offset, s.baseline_dash),
        )

        self._draw_signal(ax, time, self.buffer.channel(ch), y_base, y_base + signal_height)

        for ann in annotations:
            self._draw_annotation(ax, ann, y_base, time_scale)

    def _draw_signal(
        self,
        ax: plt.Axes,
        time: np.ndarray,
        signal: np.ndarray,
        y_low: float,
        y_high: float,
    ):
        """Draw a digital waveform as a step line."""
        if len(signal) == 0:
            return

        # Keep only the samples where the level changes, plus both ends
        keep = np.concatenate(([0], np.flatnonzero(np.diff(signal)) + 1, [len(signal) - 1]))
        x = time[keep]
        y = np.where(signal[keep] != 0, y_high, y_low)
        ax.step(x, y, where="post", lw=self.style.signal_width,
                color=self.style.signal_color, zorder=2)

    def _draw_annotation(
        self,
        ax: plt.Axes,
        ann: AnnotationLike,
        y_base: float,
        time_scale: float,
    ):
        """Draw a single annotation below the channel baseline."""
        s = self.style
        y_pos = y_base - 0.15
        t_start = ann.start * time_scale
        t_end = ann.end * time_scale

        if ann.row == "events":
            ax.vlines(t_start, y_base, y_base + 0.8, colors=s.event_color,
                      linestyles="dotted", linewidths=0.8, zorder=1)
            ax.text(t_start, y_pos, ann.label, fontsize=s.font_annotation,
                    color=s.event_color, ha="left", va="top")
            return

        color = s.error_color if ann.label.endswith("!") else s.signal_color
        ax.text(
            (t_start + t_end) / 2, y_pos,
            ann.label,
            fontsize=s.font_annotation,
            color=color,
            ha="center",
            va="top",
        )


def plot_digital(
    buffer: SampleBuffer,
    channel_map: Optional[ChannelMap] = None,
    channels: Optional[list[int]] = None,
    annotations: Optional[list] = None,
    time_unit: str = "ms",
    figsize: tuple[float, float] = (12, 6),
    title: str = "Digital Capture",
    show: bool = True,
) -> tuple[plt.Figure, plt.Axes]:
    """
    Convenience function for quick plotting.
    """
    plot = DigitalPlot(buffer, channel_map)
    if annotations:
        plot.add_annotations(annotations)
    return plot.render(
        channel_order=channels,
        time_unit=time_unit,
        title=title,
        figsize=figsize,
        show=show,
    )
