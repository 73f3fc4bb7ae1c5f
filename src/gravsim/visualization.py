"""
Visualization functions for the gravity/collision simulation.

This module provides functions to create plots and animations from particle
snapshots and recorded HDF5 files:
- Single-frame scatter of the domain
- Trajectory traces of every recorded frame
- Animated GIF of a recording

Particles are coloured by log10(mass) on a cyclic hue map, mirroring the
interactive viewer. All figures use the non-interactive Agg backend.
"""

from typing import Optional

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend for saving files
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
from matplotlib.patches import Rectangle

from gravsim.output import read_frames, read_domain_size


plt.rcParams['figure.dpi'] = 100
plt.rcParams['savefig.dpi'] = 150
plt.rcParams['font.size'] = 10


def mass_hue(masses: np.ndarray) -> np.ndarray:
    """Hue in [0, 1): (log10(mass) × 30°) mod 360°."""
    return (np.log10(masses) * 30.0 % 360.0) / 360.0


def _draw_domain(ax, domain_size: float):
    ax.add_patch(Rectangle((0, 0), domain_size, domain_size, fill=False,
                           edgecolor='#666666', linewidth=1))
    ax.set_xlim(0, domain_size)
    ax.set_ylim(domain_size, 0)  # screen orientation: y grows downward
    ax.set_aspect('equal')
    ax.set_facecolor('black')
    ax.grid(True, color='#333333', alpha=0.6)


def _draw_particles(ax, positions, radii, masses, domain_size):
    """Scatter particles with marker area proportional to their radius on screen."""
    if len(positions) == 0:
        return None
    # Points per world unit for the current axes
    fig = ax.figure
    width_in = fig.get_size_inches()[0] * ax.get_position().width
    points_per_unit = width_in * 72.0 / domain_size
    sizes = (np.maximum(radii, 1.0) * points_per_unit) ** 2 * np.pi
    colors = plt.cm.hsv(mass_hue(masses))
    return ax.scatter(positions[:, 0], positions[:, 1], s=sizes, c=colors, edgecolors='none')


def plot_frame(positions: np.ndarray, radii: np.ndarray, masses: np.ndarray,
               domain_size: float, output_path: str, title: Optional[str] = None):
    """
    Render one particle set to a PNG.

    Args:
        positions: (N, 2) world coordinates
        radii: (N,)
        masses: (N,)
        domain_size: Side length of the domain
        output_path: Path to save PNG plot
        title: Optional figure title
    """
    fig, ax = plt.subplots(figsize=(8, 8))
    _draw_domain(ax, domain_size)
    _draw_particles(ax, np.asarray(positions), np.asarray(radii), np.asarray(masses), domain_size)

    ax.set_title(title or f"Objects: {len(positions)}")
    ax.set_xlabel('x')
    ax.set_ylabel('y')

    plt.tight_layout()
    plt.savefig(output_path, bbox_inches='tight')
    plt.close(fig)


def plot_snapshots(snapshots, domain_size: float, output_path: str, title: Optional[str] = None):
    """Render a list of ParticleSnapshot (e.g. StepResult.particles) to a PNG."""
    positions = np.array([[p.x, p.y] for p in snapshots], dtype=np.float64).reshape(-1, 2)
    radii = np.array([p.radius for p in snapshots], dtype=np.float64)
    masses = np.array([p.mass for p in snapshots], dtype=np.float64)
    plot_frame(positions, radii, masses, domain_size, output_path, title=title)


def plot_trajectories(hdf5_filepath: str, output_path: str):
    """
    Overlay every recorded frame as faint dots, with the last frame on top.

    Args:
        hdf5_filepath: Path to HDF5 recording
        output_path: Path to save PNG plot
    """
    domain_size = read_domain_size(hdf5_filepath)
    frames = list(read_frames(hdf5_filepath))
    if domain_size <= 0:
        all_positions = [pos for _, pos, _, _ in frames if len(pos)]
        domain_size = float(np.max(np.concatenate(all_positions))) if all_positions else 1.0

    fig, ax = plt.subplots(figsize=(8, 8))
    _draw_domain(ax, domain_size)

    for _, positions, _, masses in frames:
        if len(positions):
            ax.scatter(positions[:, 0], positions[:, 1], s=1,
                       c=plt.cm.hsv(mass_hue(masses)), alpha=0.3, edgecolors='none')

    if frames:
        t_final, positions, radii, masses = frames[-1]
        _draw_particles(ax, positions, radii, masses, domain_size)
        ax.set_title(f"Trajectories ({len(frames)} frames, t = {t_final:.2f} s)")

    plt.tight_layout()
    plt.savefig(output_path, bbox_inches='tight')
    plt.close(fig)


def animate_recording(hdf5_filepath: str, output_path: str, fps: int = 20):
    """
    Create an animated GIF of a recording.

    Args:
        hdf5_filepath: Path to HDF5 recording
        output_path: Path to save GIF animation
        fps: Frames per second of the animation
    """
    domain_size = read_domain_size(hdf5_filepath, default=1.0)
    frames = list(read_frames(hdf5_filepath))

    fig, ax = plt.subplots(figsize=(6, 6))

    def update(k):
        ax.clear()
        _draw_domain(ax, domain_size)
        t, positions, radii, masses = frames[k]
        _draw_particles(ax, positions, radii, masses, domain_size)
        ax.set_title(f"t = {t:.2f} s   objects: {len(positions)}")
        return []

    anim = FuncAnimation(fig, update, frames=len(frames), blit=False)
    anim.save(output_path, writer=PillowWriter(fps=fps))
    plt.close(fig)
