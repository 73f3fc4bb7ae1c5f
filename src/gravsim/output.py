"""
Trajectory recording for the gravity/collision simulation.

This module writes emitted frames to an HDF5 file for offline analysis and
plotting. It is a one-way output stream: there is no path that loads a file
back into a running engine.

Particle counts change when particles are culled, so frames are stored
ragged. Frame k owns rows offsets[k]:offsets[k+1] of the flat particle
datasets.
"""

from pathlib import Path
from typing import Iterator, Optional, Tuple

import h5py
import numpy as np

from gravsim.config import SimulationParameters
from gravsim.diagnostics import total_kinetic_energy, total_momentum
from gravsim.state import SimulationState


class SimulationRecorder:
    """
    Records simulation frames to an HDF5 file.

    The HDF5 file structure:
    /config (group) - Simulation configuration as attributes
    /frames (group)
        /time (dataset) - Simulated time of each frame [s]
        /timestep (dataset) - Tick counter of each frame
        /offsets (dataset) - Row offsets into /particles, length n_frames + 1
    /particles (group) - Flat per-particle rows for all frames
        /positions (dataset) - (n_rows, 2)
        /velocities (dataset) - (n_rows, 2)
        /masses (dataset) - (n_rows,)
        /radii (dataset) - (n_rows,)
    /conservation (group)
        /kinetic_energy (dataset) - Total KE per frame
        /momentum (dataset) - Total momentum per frame (n_frames, 2)
    """

    def __init__(self, filepath: str, params: Optional[SimulationParameters] = None,
                 domain_size: Optional[float] = None):
        """
        Create the HDF5 file.

        Args:
            filepath: Path to HDF5 output file
            params: Simulation parameters stored as /config attributes
            domain_size: Domain size stored when params is not given
        """
        self.filepath = Path(filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

        self.file = h5py.File(str(self.filepath), 'w')
        self._save_configuration(params, domain_size)
        self._create_datasets()

        self.n_frames = 0
        self.n_rows = 0

    def _save_configuration(self, params: Optional[SimulationParameters], domain_size: Optional[float]):
        """Save simulation configuration to HDF5 file."""
        config_group = self.file.create_group('config')

        if params is not None:
            config_group.attrs['simulation_name'] = params.simulation_name
            config_group.attrs['domain_size'] = params.domain_size
            config_group.attrs['friction'] = params.friction
            config_group.attrs['dampening'] = params.dampening
            config_group.attrs['speed_multiplier'] = params.speed_multiplier
            config_group.attrs['gravitational_constant'] = params.profile.gravitational_constant
            config_group.attrs['scale_factor'] = params.profile.scale_factor
            config_group.attrs['softening_factor'] = params.profile.softening_factor
            config_group.attrs['min_distance_factor'] = params.profile.min_distance_factor
            config_group.attrs['cull_margin'] = params.profile.cull_margin
            config_group.attrs['steps_per_second'] = params.profile.steps_per_second
        elif domain_size is not None:
            config_group.attrs['domain_size'] = domain_size

    def _create_datasets(self):
        """Create resizable datasets for frames and particle rows."""
        frames = self.file.create_group('frames')
        frames.create_dataset('time', shape=(0,), maxshape=(None,), dtype=np.float64, chunks=True)
        frames.create_dataset('timestep', shape=(0,), maxshape=(None,), dtype=np.int64, chunks=True)
        frames.create_dataset('offsets', data=np.zeros(1, dtype=np.int64), maxshape=(None,), chunks=True)

        particles = self.file.create_group('particles')
        for name in ('positions', 'velocities'):
            particles.create_dataset(name, shape=(0, 2), maxshape=(None, 2), dtype=np.float64,
                                     chunks=True, compression='gzip', compression_opts=4)
        for name in ('masses', 'radii'):
            particles.create_dataset(name, shape=(0,), maxshape=(None,), dtype=np.float64,
                                     chunks=True, compression='gzip', compression_opts=4)

        cons = self.file.create_group('conservation')
        cons.create_dataset('kinetic_energy', shape=(0,), maxshape=(None,), dtype=np.float64, chunks=True)
        cons.create_dataset('momentum', shape=(0, 2), maxshape=(None, 2), dtype=np.float64, chunks=True)

    def record_frame(self, state: SimulationState):
        """
        Append the current particle set as a new frame.

        Args:
            state: Current simulation state
        """
        idx = self.n_frames
        n = state.n_total
        start, stop = self.n_rows, self.n_rows + n

        frames = self.file['frames']
        frames['time'].resize((idx + 1,))
        frames['time'][idx] = state.time
        frames['timestep'].resize((idx + 1,))
        frames['timestep'][idx] = state.timestep_count
        frames['offsets'].resize((idx + 2,))
        frames['offsets'][idx + 1] = stop

        particles = self.file['particles']
        if n > 0:
            particles['positions'].resize((stop, 2))
            particles['positions'][start:stop] = state.positions
            particles['velocities'].resize((stop, 2))
            particles['velocities'][start:stop] = state.velocities
            particles['masses'].resize((stop,))
            particles['masses'][start:stop] = state.masses
            particles['radii'].resize((stop,))
            particles['radii'][start:stop] = state.radii

        cons = self.file['conservation']
        cons['kinetic_energy'].resize((idx + 1,))
        cons['kinetic_energy'][idx] = total_kinetic_energy(state)
        cons['momentum'].resize((idx + 1, 2))
        cons['momentum'][idx] = total_momentum(state)

        self.n_frames += 1
        self.n_rows = stop

    def close(self):
        """Close HDF5 file."""
        if getattr(self, 'file', None) is not None:
            self.file.close()
            self.file = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def read_frames(hdf5_filepath: str) -> Iterator[Tuple[float, np.ndarray, np.ndarray, np.ndarray]]:
    """
    Iterate over recorded frames.

    Yields:
        (time, positions (n, 2), radii (n,), masses (n,)) per frame
    """
    with h5py.File(hdf5_filepath, 'r') as f:
        times = f['frames/time'][:]
        offsets = f['frames/offsets'][:]
        positions = f['particles/positions']
        radii = f['particles/radii']
        masses = f['particles/masses']

        for k, t in enumerate(times):
            start, stop = int(offsets[k]), int(offsets[k + 1])
            yield float(t), positions[start:stop], radii[start:stop], masses[start:stop]


def read_domain_size(hdf5_filepath: str, default: float = 0.0) -> float:
    """Domain size stored in /config, or default."""
    with h5py.File(hdf5_filepath, 'r') as f:
        return float(f['config'].attrs.get('domain_size', default))
