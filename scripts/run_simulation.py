#!/usr/bin/env python3
"""Helper script to run the walk simulator and the replay locally."""
import argparse
import os
import subprocess

parser = argparse.ArgumentParser()
parser.add_argument("--out", required=True)
parser.add_argument("--room", choices=["rectangle", "l-shaped"], default="rectangle")
parser.add_argument("--noise", type=float, default=0.01)
args = parser.parse_args()

walk_dir = os.path.abspath(args.out)

# run simulator
subprocess.check_call([
    "python3", "-m", "simulation.generate_synthetic",
    "--out", walk_dir, "--room", args.room, "--noise", str(args.noise),
])
# replay into a plan
outdir = os.path.join(walk_dir, "artifacts")
subprocess.check_call([
    "python3", "-m", "capture.replay", "--walk", walk_dir,
    "--out", os.path.join(outdir, "plan.json"),
    "--dxf", os.path.join(outdir, "plan.dxf"),
])
print("Done. artifacts in:", outdir)
