"""
Main simulation runner script.

Usage:
    python scripts/run_simulation.py configs/default_config.yaml
    python scripts/run_simulation.py configs/default_config.yaml --realtime 5

This script:
1. Loads configuration from YAML file
2. Initializes simulation state
3. Runs the simulation (batch with progress bar, or the real-time worker)
4. Saves frames to HDF5 file
5. Generates plots
"""

import sys
import argparse
import queue
import time
from pathlib import Path

# Add src to path so we can import gravsim without installing it
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from gravsim.config import SimulationParameters
from gravsim.diagnostics import check_state_health, total_kinetic_energy, total_momentum
from gravsim.engine import PhysicsEngine, PhysicsWorker
from gravsim.evolution import evolve_system
from gravsim.initialization import initialize_simulation
from gravsim.logging_setup import setup_logging
from gravsim.messages import Init, SetDampening, SetFriction, SetPaused, SetSpeed
from gravsim.output import SimulationRecorder
from gravsim.visualization import (
    plot_trajectories,
    plot_snapshots,
    animate_recording,
)


def run_realtime(params, seconds, output_dir, skip_plots, seed=42):
    """Drive the threaded worker for a wall-clock duration, like the interactive viewer."""
    state = initialize_simulation(params, seed=seed)

    worker = PhysicsWorker(PhysicsEngine(profile=params.profile, domain_size=params.domain_size))
    worker.post(Init(tuple(state.to_snapshots()), params.domain_size))
    worker.post(SetFriction(params.friction))
    worker.post(SetDampening(params.dampening))
    worker.post(SetSpeed(params.speed_multiplier))
    worker.post(SetPaused(params.paused))
    worker.start()

    latest = None
    deadline = time.monotonic() + seconds
    try:
        while time.monotonic() < deadline:
            try:
                latest = worker.outbox.get(timeout=0.1)
            except queue.Empty:
                continue
    finally:
        worker.stop()

    print(f"Worker completed {worker.ticks_completed} ticks in {seconds:.1f} s")
    if latest is not None:
        print(f"Last frame: step {latest.timestep}, t={latest.time:.2f} s, "
              f"{len(latest.particles)} particles")
        if not skip_plots:
            frame_path = output_dir / 'final_frame.png'
            plot_snapshots(latest.particles, params.domain_size, str(frame_path))
            print(f"  [OK] {frame_path.name}")


def main():
    parser = argparse.ArgumentParser(
        description='Run 2D gravity/collision simulation'
    )
    parser.add_argument(
        'config',
        type=str,
        help='Path to YAML configuration file'
    )
    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Output HDF5 file path (default: auto from config)'
    )
    parser.add_argument(
        '--steps',
        type=int,
        default=None,
        help='Override the number of steps from the config'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=42,
        help='Random seed for the random particle field'
    )
    parser.add_argument(
        '--realtime',
        type=float,
        default=None,
        metavar='SECONDS',
        help='Run the threaded fixed-rate worker for SECONDS instead of a batch run'
    )
    parser.add_argument(
        '--skip-plots',
        action='store_true',
        help='Skip plot generation'
    )
    parser.add_argument(
        '--animate',
        action='store_true',
        help='Also render an animated GIF of the recording'
    )

    args = parser.parse_args()

    # Load configuration
    params = SimulationParameters.from_yaml(args.config)
    setup_logging(params.log_level, params.log_format, params.log_file)

    if args.steps is not None:
        params.n_steps = args.steps

    problems = params.validate()
    for problem in problems:
        print(problem)
    if any(p.startswith("ERROR") for p in problems):
        sys.exit(1)

    # Determine output path
    if args.output:
        output_path = args.output
    else:
        output_dir = Path(params.output_directory)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = str(output_dir / f"{params.simulation_name}.h5")
    output_dir = Path(output_path).parent
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 70)
    print(params)
    print("=" * 70)
    print()

    if args.realtime is not None:
        run_realtime(params, args.realtime, output_dir, args.skip_plots, seed=args.seed)
        print("Done!")
        return

    print(f"Output will be saved to: {output_path}")
    state = initialize_simulation(params, seed=args.seed)
    print(f"Initialized {state.n_total} particles")
    print()

    start_time = time.time()
    with SimulationRecorder(output_path, params) as recorder:
        stats = evolve_system(
            state, params.profile, params.n_steps,
            show_progress=True,
            recorder=recorder,
            output_interval=params.output_interval
        )
    elapsed_time = time.time() - start_time

    print()
    print("=" * 70)
    print(f"Simulation completed in {elapsed_time:.1f} seconds")
    print(f"Simulated time: {stats['final_time']:.2f} s over {stats['final_timestep']} steps")
    print(f"Particles remaining: {stats['final_particle_count']}")
    print(f"Collisions resolved: {stats['total_collisions']} "
          f"({stats['total_degenerate']} degenerate)")
    print(f"Culled: {stats['total_culled']}, dropped (non-finite): {stats['total_dropped']}")
    print(f"Final kinetic energy: {total_kinetic_energy(state):.4e}")
    print(f"Final momentum: {total_momentum(state)}")
    for warning in check_state_health(state, params.profile):
        print(f"  {warning}")
    print("=" * 70)
    print()

    if not args.skip_plots:
        print("Generating plots...")
        trajectories_path = output_dir / 'trajectories.png'
        plot_trajectories(output_path, str(trajectories_path))
        print(f"  [OK] {trajectories_path.name}")

        if args.animate:
            gif_path = output_dir / 'animation.gif'
            animate_recording(output_path, str(gif_path))
            print(f"  [OK] {gif_path.name}")
    else:
        print("Skipping plot generation (--skip-plots)")

    print()
    print("Done!")


if __name__ == '__main__':
    main()
