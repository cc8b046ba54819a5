#!/usr/bin/env python3
"""
ERP Analysis Script

This is the main entry point for analysing an OpenBCI oddball recording.
It runs the whole pipeline from data loading to saving the averaged ERPs.

Usage Examples:
    # Analyse synthetic data (for testing)
    python analyze.py --fake

    # Analyse an OpenBCI GUI export using the D17 digital trigger
    python analyze.py --txt OpenBCI-RAW-2025-06-11_10-37-35.txt --plot

    # Photodiode recording with the older flash widths
    python analyze.py --txt session.txt --mode threshold --short-width 32 --short-tol 5 --long-width 128
"""

import argparse
import logging
import os
import sys
import time

from erp_analysis.config import Config, ensure_output_dirs
from erp_analysis.data_io import load_csv, load_openbci_txt
from erp_analysis.fake_data import synthesize_erp_session
from erp_analysis.pipeline import run_erp_pipeline
from erp_analysis.utils import (
    setup_logging, print_trial_summary, plot_erps, save_results, save_evoked
)


def load_data(args, config: Config):
    """
    Load the session from the selected source

    Returns:
        SampleTable
    """
    if args.fake:
        logging.info("Generating synthetic oddball data")
        table, _ = synthesize_erp_session(
            n_target=args.n_target,
            n_non_target=args.n_non_target,
            fs=config.fs,
            short_width=config.short_width,
            long_width=config.long_width,
            n_glitches=args.n_glitches,
            seed=args.seed
        )
        return table

    if args.txt:
        return load_openbci_txt(args.txt, fs=args.fs)

    if args.csv:
        return load_csv(args.csv, fs=config.fs if args.fs is None else args.fs)

    raise ValueError("No data source selected")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        description="Compute target / non-target ERPs from an OpenBCI recording",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Synthetic data (for testing)
  python analyze.py --fake --plot

  # OpenBCI export, digital trigger on D17
  python analyze.py --txt OpenBCI-RAW.txt --output-dir results

  # Photodiode on Analog Channel 0
  python analyze.py --txt OpenBCI-RAW.txt --mode threshold --threshold 700
        """
    )

    # Data source (mutually exclusive)
    source_group = parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument('--fake', action='store_true',
                              help='Use synthetic oddball data')
    source_group.add_argument('--txt', type=str,
                              help='Path to OpenBCI GUI RAW .txt export')
    source_group.add_argument('--csv', type=str,
                              help='Path to CSV with canonical column names')

    # Synthetic data parameters
    parser.add_argument('--n-target', type=int, default=20,
                        help='Target trials for synthetic data (default: 20)')
    parser.add_argument('--n-non-target', type=int, default=80,
                        help='Non-target trials for synthetic data (default: 80)')
    parser.add_argument('--n-glitches', type=int, default=5,
                        help='Trigger glitches for synthetic data (default: 5)')

    # Signal processing parameters
    parser.add_argument('--fs', type=float,
                        help='Sampling frequency in Hz (default: from file header, else 250)')
    parser.add_argument('--notch', type=float, default=60.0,
                        help='Line-noise frequency (default: 60)')
    parser.add_argument('--notch-width', type=float, default=1.0,
                        help='Half-width of the notch stop band in Hz (default: 1)')
    parser.add_argument('--bp-low', type=float, default=0.5,
                        help='Band-pass low cutoff in Hz (default: 0.5)')
    parser.add_argument('--bp-high', type=float, default=30.0,
                        help='Band-pass high cutoff in Hz (default: 30.0)')
    parser.add_argument('--polarity', type=int, choices=[-1, 1], default=-1,
                        help='Sign applied after filtering (default: -1)')

    # Epoch window
    parser.add_argument('--pre', type=float, default=0.2,
                        help='Seconds before onset (default: 0.2)')
    parser.add_argument('--post', type=float, default=0.8,
                        help='Seconds after onset (default: 0.8)')
    parser.add_argument('--no-baseline', action='store_true',
                        help='Disable pre-stimulus baseline correction')

    # Stimulus detection
    parser.add_argument('--mode', choices=['digital', 'threshold'], default='digital',
                        help='Trigger source (default: digital)')
    parser.add_argument('--threshold', type=float, default=700.0,
                        help='Photodiode threshold for threshold mode (default: 700)')
    parser.add_argument('--trigger-bit', type=int, default=7,
                        help='Bit of the digital byte carrying the trigger (default: 7)')
    parser.add_argument('--min-pulse', type=int, default=30,
                        help='Glitch rejection width in samples (default: 30)')

    # Pulse-width classes
    parser.add_argument('--short-width', type=int, default=45,
                        help='Non-target flash width in samples (default: 45)')
    parser.add_argument('--short-tol', type=int, default=10,
                        help='Non-target width tolerance (default: 10)')
    parser.add_argument('--long-width', type=int, default=135,
                        help='Target flash width in samples (default: 135)')
    parser.add_argument('--long-tol', type=int, default=10,
                        help='Target width tolerance (default: 10)')

    parser.add_argument('--channels', type=str, nargs='+',
                        help='Electrode labels for the 8 EXG channels')

    # Output parameters
    parser.add_argument('--output-dir', type=str, default='results',
                        help='Output directory (default: results)')
    parser.add_argument('--name', type=str, default='ERP_results',
                        help='Base name of output files (default: ERP_results)')
    parser.add_argument('--plot', action='store_true',
                        help='Save one ERP plot per channel')
    parser.add_argument('--show', action='store_true',
                        help='Show the ERP plots interactively')
    parser.add_argument('--evoked', action='store_true',
                        help='Also save the averages as an MNE -ave.fif file')

    # Other parameters
    parser.add_argument('--n-jobs', type=int, default=1,
                        help='Parallel workers for epoch averaging (default: 1)')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed for synthetic data (default: 42)')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')

    return parser


def config_from_args(args) -> Config:
    """Build the analysis configuration from parsed arguments"""
    config = Config(
        fs=args.fs if args.fs is not None else 250.0,
        pre_stim=args.pre,
        post_stim=args.post,
        notch_hz=args.notch,
        notch_half_width=args.notch_width,
        bp_low=args.bp_low,
        bp_high=args.bp_high,
        polarity=args.polarity,
        trigger_mode=args.mode,
        threshold=args.threshold,
        trigger_bit=args.trigger_bit,
        min_pulse_width=args.min_pulse,
        short_width=args.short_width,
        short_tol=args.short_tol,
        long_width=args.long_width,
        long_tol=args.long_tol,
        baseline_correct=not args.no_baseline,
        ch_labels=args.channels
    )

    config.out_npz = os.path.join(args.output_dir, f"{args.name}.npz")
    config.out_meta = os.path.join(args.output_dir, f"{args.name}.json")
    if args.plot:
        config.out_fig_dir = os.path.join(args.output_dir, "figures")
    if args.evoked:
        config.out_evoked = os.path.join(args.output_dir, f"{args.name}-ave.fif")

    return config


def main(argv=None):
    """Main analysis function"""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug)
    logging.info("Starting ERP analysis")

    start_time = time.time()

    try:
        config = config_from_args(args)

        table = load_data(args, config)
        result = run_erp_pipeline(table, config, n_jobs=args.n_jobs)

        ensure_output_dirs(config)
        save_results(result, config.out_npz, config.out_meta, config)

        if config.out_evoked:
            save_evoked(result, config.out_evoked)

        if config.out_fig_dir or args.show:
            plot_erps(result, out_dir=config.out_fig_dir, show=args.show)

        print_trial_summary(result)

        logging.info(f"Analysis completed in {time.time() - start_time:.1f} seconds")
        return 0

    except KeyboardInterrupt:
        logging.info("Analysis interrupted by user")
        return 1
    except Exception as e:
        logging.error(f"Analysis failed: {e}")
        if args.debug:
            raise  # Re-raise with full traceback in debug mode
        return 1


if __name__ == '__main__':
    sys.exit(main())
