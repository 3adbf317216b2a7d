import sys
import runpy

# debugpy puts the real arguments after "--"
if "--" in sys.argv:
    args = sys.argv[sys.argv.index("--") + 1 :]
else:
    args = sys.argv[1:]

# let Typer see a clean argv
sys.argv = ["opsmcp"] + args

# same as: python -m opsmcp ...
runpy.run_module("opsmcp", run_name="__main__")
