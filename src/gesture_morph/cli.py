"""gesture-morph CLI — the main entry point for all operations.

Usage:
    gesture-morph serve          — Start the WebSocket frame server
    gesture-morph simulate       — Run the scene headless from a script or recording
    gesture-morph record         — Record hand landmarks from the camera
    gesture-morph export-clouds  — Write the tree and sphere clouds to .npz
    gesture-morph init-config    — Write the default scene config as YAML
    gesture-morph benchmark      — Run performance benchmarks
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

try:
    import typer
except ImportError:
    raise ImportError("typer is required for CLI. Install with: pip install typer")

from gesture_morph.config import ConfigurationError, SceneConfig

app = typer.Typer(
    name="gesture-morph",
    help="🎄 Gesture-driven tree ↔ sphere particle morph.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(path: Optional[str]) -> SceneConfig:
    if path is None:
        return SceneConfig()
    try:
        return SceneConfig.from_yaml(path)
    except ConfigurationError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


def _override(scene: SceneConfig, **changes) -> SceneConfig:
    """Rebuild ``scene`` with top-level sections replaced; bad values exit 1."""
    try:
        return SceneConfig.from_dict({**scene.to_dict(), **changes})
    except ConfigurationError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Scene config YAML"),
    host: Optional[str] = typer.Option(None, help="Bind address (overrides config)"),
    port: Optional[int] = typer.Option(None, help="Port (overrides config)"),
    camera: Optional[int] = typer.Option(None, help="Camera index for server-side hand tracking"),
    seed: Optional[int] = typer.Option(None, help="Seed for cloud generation"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the WebSocket frame streaming server."""
    import uvicorn
    from gesture_morph import server

    _setup_logging(log_level)
    scene = _load_config(config)
    overrides = scene.to_dict()["server"]
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if camera is not None:
        overrides["camera_index"] = camera
    scene = _override(scene, server=overrides)

    server.configure(scene, seed=seed)
    typer.echo(f"🚀 Starting gesture-morph server on {scene.server.host}:{scene.server.port}")
    typer.echo(f"   Streaming {scene.particle_count} particles at {scene.server.fps:.0f} fps on /ws")
    uvicorn.run(server.app, host=scene.server.host, port=scene.server.port, log_level=log_level)


@app.command()
def simulate(
    script: str = typer.Option("0:fist,3:palm,6:fist", help="Gesture schedule '<seconds>:<gesture>,...'"),
    recording: Optional[str] = typer.Option(None, help="Replay a recorded session instead of a script"),
    duration: Optional[float] = typer.Option(None, help="Seconds to simulate (default: script end + 3s)"),
    fps: float = typer.Option(30.0, help="Simulated frame rate"),
    noise: float = typer.Option(0.0, help="Landmark jitter for scripted hands"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Scene config YAML"),
    seed: Optional[int] = typer.Option(0, help="Seed for clouds and jitter"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Run the scene headless and report mode changes and timings."""
    from gesture_morph.pipeline import ScenePipeline
    from gesture_morph.recorder import LandmarkPlayer
    from gesture_morph.synthetic import GestureScript

    _setup_logging(log_level)
    if fps <= 0:
        typer.echo("❌ fps must be > 0", err=True)
        raise typer.Exit(1)

    scene = _load_config(config)
    pipeline = ScenePipeline(config=scene, seed=seed)

    def on_change(event):
        typer.echo(f"   {event.timestamp:7.2f}s  {event.previous.value} → {event.mode.value}")

    pipeline.on_mode_change(on_change)

    if recording is not None:
        path = Path(recording)
        if not path.exists():
            typer.echo(f"❌ Recording not found: {recording}", err=True)
            raise typer.Exit(1)
        try:
            player = LandmarkPlayer.load(path)
        except (ValueError, KeyError) as e:
            typer.echo(f"❌ Cannot read recording {path}: {e}", err=True)
            raise typer.Exit(1)
        typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} frames, {player.duration:.1f}s)")
        for frame in player.play():
            pipeline.step(frame.timestamp, frame.landmarks, frame.timestamp)
    else:
        try:
            gestures = GestureScript.parse(script, noise=noise, seed=seed)
        except ValueError as e:
            typer.echo(f"❌ {e}", err=True)
            raise typer.Exit(1)
        total = duration if duration is not None else gestures.duration + 3.0
        frames = int(total * fps) + 1
        typer.echo(f"▶️  Simulating {total:.1f}s at {fps:.0f} fps ({frames} frames)")
        for i in range(frames):
            t = i / fps
            pipeline.step(t, gestures.landmarks_at(t))

    stats = pipeline.stats
    typer.echo(f"\n✅ Done: {stats.total_frames} frames, {stats.mode_changes} mode changes")
    typer.echo(f"   Final mode: {stats.mode} (morph {stats.morph:.3f})")
    typer.echo("\n📈 Stage breakdown:")
    for name, s in stats.profiler_summary.items():
        typer.echo(f"   {name:16s} mean={s['mean_ms']:.3f}ms  p95={s['p95_ms']:.3f}ms  share={s['share']:.0%}")


@app.command()
def record(
    output: str = typer.Option("recording.json", "-o", help="Output file path"),
    duration: float = typer.Option(0, help="Recording duration in seconds (0 = until Ctrl+C)"),
    compact: bool = typer.Option(False, help="Save in compact .npz format"),
    camera: int = typer.Option(0, help="Camera device index"),
):
    """Record hand landmark data from the camera."""
    from gesture_morph.classifier import GestureClassifier
    from gesture_morph.detector import CameraSource
    from gesture_morph.recorder import LandmarkRecorder

    try:
        source = CameraSource(camera)
    except (ImportError, RuntimeError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    classifier = GestureClassifier()
    recorder = LandmarkRecorder()

    typer.echo(f"🎥 Recording from camera {camera}...")
    typer.echo("   Press Ctrl+C to stop")
    recorder.start()
    start = time.monotonic()

    try:
        with source:
            while True:
                landmarks, ts = source.read()
                if ts is None:
                    continue
                result = classifier.classify(landmarks, ts)
                recorder.add_frame(landmarks, result.label.value if result.is_present else None)

                if recorder.frame_count % 30 == 0:
                    elapsed = time.monotonic() - start
                    typer.echo(f"\r   Frames: {recorder.frame_count} | Duration: {elapsed:.1f}s | "
                               f"Gesture: {result.label.value}", nl=False)

                if duration > 0 and (time.monotonic() - start) >= duration:
                    break
    except KeyboardInterrupt:
        pass
    finally:
        recorder.stop()

    typer.echo(f"\n\n📼 Recorded {recorder.frame_count} frames ({recorder.duration:.1f}s)")
    if compact:
        saved = recorder.save_compact(output)
    else:
        recorder.save(output)
        saved = output
    typer.echo(f"💾 Saved to: {saved}")


@app.command("export-clouds")
def export_clouds(
    output: str = typer.Option("clouds.npz", "-o", help="Output .npz path"),
    count: Optional[int] = typer.Option(None, help="Particle count (overrides config)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Scene config YAML"),
    seed: Optional[int] = typer.Option(None, help="Seed for reproducible clouds"),
):
    """Generate the tree and sphere clouds and save them to an .npz file."""
    import numpy as np
    from gesture_morph.shapes import generate_clouds

    scene = _load_config(config)
    n = count if count is not None else scene.particle_count
    try:
        tree, sphere = generate_clouds(n, scene.tree, scene.sphere, seed)
    except ConfigurationError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    path = Path(output).with_suffix(".npz")
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(path, tree=tree, sphere=sphere)
    typer.echo(f"✅ Wrote {n} points per shape to {path} ({path.stat().st_size / 1024:.1f} KB)")


@app.command("init-config")
def init_config(
    output: str = typer.Argument("scene.yml", help="Where to write the config"),
    force: bool = typer.Option(False, help="Overwrite an existing file"),
):
    """Write the default scene configuration as YAML."""
    path = Path(output)
    if path.exists() and not force:
        typer.echo(f"❌ {path} exists (use --force to overwrite)", err=True)
        raise typer.Exit(1)
    SceneConfig().save_yaml(path)
    typer.echo(f"💾 Default config written to {path}")


@app.command()
def benchmark(
    frames: int = typer.Option(1000, min=1, help="Number of frames"),
    count: Optional[int] = typer.Option(None, help="Particle count (default from config)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Scene config YAML"),
):
    """Run performance benchmarks on the scene pipeline."""
    from gesture_morph.pipeline import ScenePipeline
    from gesture_morph.synthetic import synthetic_hand

    scene = _load_config(config)
    if count is not None:
        scene = _override(scene, particle_count=count)

    typer.echo(f"⚡ Running benchmark: {frames} frames, {scene.particle_count} particles")
    pipeline = ScenePipeline(config=scene, seed=42)
    hands = [synthetic_hand(4), synthetic_hand(0)]

    times = []
    for i in range(frames):
        t = i / 60.0
        # alternate fist / palm every 2 s
        landmarks = hands[(i // 120) % 2]
        t0 = time.perf_counter()
        pipeline.step(t, landmarks)
        times.append(time.perf_counter() - t0)

    avg_ms = sum(times) / len(times) * 1000
    p95_ms = sorted(times)[int(len(times) * 0.95)] * 1000
    fps = 1000 / avg_ms if avg_ms > 0 else 0

    typer.echo("\n📊 Results:")
    typer.echo(f"   Average latency: {avg_ms:.2f} ms")
    typer.echo(f"   P95 latency:     {p95_ms:.2f} ms")
    typer.echo(f"   Throughput:      {fps:.0f} FPS")

    typer.echo("\n📈 Stage breakdown:")
    for name, stats in pipeline.profiler.summary().items():
        typer.echo(f"   {name:25s} mean={stats['mean_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms")

    budget = pipeline.profiler.budget_report()
    typer.echo(f"\n⏱️  Budget {budget['budget_ms']:.1f} ms at {budget['target_fps']:.0f} fps: "
               f"{budget['overruns']} of {budget['frames']} frames over")


def main():
    app()


if __name__ == "__main__":
    main()
