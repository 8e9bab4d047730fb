import argparse
import os
import sys
import threading

from loguru import logger

from hdrstack.logger import setup_logging
from hdrstack.config import BLEND_MODE_NAMES, load_settings
from hdrstack.errors import HDRStackError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='hdrstack',
        description="Tonemap (and optionally compare) HDR images to an 8-bit file.",
    )
    parser.add_argument('images', nargs='+', help="Input images; the first one is the current image")
    parser.add_argument('-o', '--output', required=True, help="Output PNG/JPEG path")
    parser.add_argument('-e', '--exposure', type=float, default=0.0, help="Exposure in stops (EV)")
    parser.add_argument('-g', '--gamma', type=float, default=None, help="Display gamma (default from config)")
    parser.add_argument('--group', default=None, help="Channel group to show, e.g. RGB, A, Z")
    parser.add_argument('--normalize', action='store_true', help="Rescale the group's range to [0, 1]")
    parser.add_argument('--no-dither', action='store_true')
    parser.add_argument('--no-clamp', action='store_true')
    parser.add_argument('--flip', action='store_true', help="Flip about the horizontal axis")
    parser.add_argument('--mirror', action='store_true', help="Mirror about the vertical axis")
    parser.add_argument('-r', '--reference', type=int, default=None,
                        help="1-based index of the reference image among the inputs")
    parser.add_argument('-b', '--blend', default=None,
                        choices=BLEND_MODE_NAMES, help="Blend mode against the reference")
    parser.add_argument('--config', default=None, help="Path to a JSON config file")
    parser.add_argument('--log-file', action='store_true', help="Also write a rotating log file")
    parser.add_argument('-v', '--verbose', action='store_true', help="Show debug messages")
    return parser


def run(args: argparse.Namespace) -> int:
    # numba is imported from here on, after configure_numba_cache()
    from hdrstack.pipeline.compositor import BlendMode
    from hdrstack.session import Session

    session = Session(load_settings(args.config))

    ids = [session.open_image(path) for path in args.images]
    current = session.stack.get(ids[0])

    if args.group is not None:
        session.select_group(current.group_index(args.group))
    if args.exposure:
        session.set_exposure(args.exposure)
    if args.gamma is not None:
        session.set_gamma(args.gamma)
    if args.flip:
        session.flip('vertical')
    if args.mirror:
        session.flip('horizontal')
    if args.reference is not None:
        session.select_nth(1)
        session.select_reference(session.stack.id_at(args.reference - 1))
    if args.blend is not None:
        session.set_blend_mode(BlendMode.from_name(args.blend))

    session.normalize = args.normalize or session.normalize
    session.dither = session.dither and not args.no_dither
    session.clamp_to_ldr = session.clamp_to_ldr and not args.no_clamp

    stats = session.current_stats()
    logger.info(f"[{current.selected_group.name}] min={stats.minimum:.4g} max={stats.maximum:.4g} "
                f"avg={stats.average:.4g}, EV {current.exposure_ev:+.2f}")

    return 0 if session.save_image(args.output) else 1


def configure_numba_cache():
    """Frozen apps cannot write a cache next to the bundled modules"""
    if getattr(sys, 'frozen', False):
        cache_dir = os.path.expanduser('~/.hdrstack/numba_cache')
        os.makedirs(cache_dir, exist_ok=True)
        os.environ['NUMBA_CACHE_DIR'] = cache_dir


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    configure_numba_cache()

    log_path = setup_logging(verbose=args.verbose, log_file=args.log_file)
    if log_path:
        logger.debug(f"Logging to {log_path}")

    # JIT warmup overlaps with image loading
    from hdrstack import math_ops
    warmup_thread = threading.Thread(target=math_ops.warmup, daemon=True)
    warmup_thread.start()

    try:
        return run(args)
    except (HDRStackError, OSError) as e:
        logger.error(f"❌ {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
