"""
vadrtools Command-Line Interface

Entry points for vadrtools-build, vadrtools-validate, vadrtools-summarize,
vadrtools-alerts and vadrtools-config.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from vadrtools.logging import setup_logging


BUILD_EPILOG = """
Examples:
  # Fetch NC_039477 from NCBI and build a model in NC_039477/
  %(prog)s NC_039477 NC_039477

  # Use local files, skip the (slow) covariance model build
  %(prog)s --infa ref.fa --ingb ref.gb --skipbuild NC_039477 NC_039477

  # Keep all qualifiers, overwrite an existing directory
  %(prog)s -f --qall NC_039477 NC_039477
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vadrtools-build",
        description="Build a VADR model from a reference accession",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=BUILD_EPILOG,
    )
    parser.add_argument("accession", help="Reference accession (e.g. NC_039477 or NC_039477.1)")
    parser.add_argument("out_dir", help="Output directory to create")

    basic = parser.add_argument_group("basic options")
    basic.add_argument("-f", dest="force", action="store_true",
                       help="Force: overwrite the output directory if it exists")
    basic.add_argument("-v", "--verbose", action="store_true", help="Print debug messages")
    basic.add_argument("--keep", action="store_true", help="Keep intermediate files")

    inputs = parser.add_argument_group("input options")
    inputs.add_argument("--stk", metavar="FILE", type=Path,
                        help="Read single-sequence Stockholm alignment (may have SS_cons)")
    inputs.add_argument("--infa", metavar="FILE", type=Path,
                        help="Read reference FASTA from FILE instead of fetching it")
    inputs.add_argument("--ingb", "--gb", dest="ingb", metavar="FILE", type=Path,
                        help="Read reference GenBank record from FILE instead of fetching it")
    inputs.add_argument("--addminfo", metavar="FILE", type=Path,
                        help="Merge feature information from model info FILE")
    inputs.add_argument("--forcelong", action="store_true",
                        help="Allow sequences longer than the maximum length")

    ftr = parser.add_argument_group("feature type and qualifier options")
    ftr.add_argument("--fall", action="store_true", help="Keep all feature types except those in --fskip")
    ftr.add_argument("--fadd", metavar="TYPES", help="Also keep these feature types (comma-separated)")
    ftr.add_argument("--fskip", metavar="TYPES", help="Do not keep these feature types (comma-separated)")
    ftr.add_argument("--qall", action="store_true", help="Keep all qualifiers except those in --qskip")
    ftr.add_argument("--qadd", metavar="QUALS", help="Also keep these qualifiers (comma-separated)")
    ftr.add_argument("--qftradd", metavar="TYPES",
                     help="Only apply --qadd to these feature types (comma-separated)")
    ftr.add_argument("--qskip", metavar="QUALS", help="Do not keep these qualifiers (comma-separated)")
    ftr.add_argument("--noaddgene", action="store_true",
                     help="Do not copy gene qualifiers onto overlapping CDS/mRNA/regulatory features")

    mdl = parser.add_argument_group("model info options")
    mdl.add_argument("--group", help="Group name for the model (e.g. Norovirus)")
    mdl.add_argument("--subgroup", help="Subgroup name for the model (requires --group)")
    mdl.add_argument("--ttbl", type=int, default=1, help="NCBI translation table (default: 1)")

    cm = parser.add_argument_group("model building options")
    cm.add_argument("--cmn", type=int, help="Number of sequences for glocal forward filter calibration")
    cm.add_argument("--cmp7ml", action="store_true", help="Use ML p7 HMM for the CM filter")
    cm.add_argument("--cmere", type=float, help="Relative entropy target for cmbuild")
    cm.add_argument("--cmeset", type=float, help="Effective sequence number for cmbuild")
    cm.add_argument("--cmemaxseq", type=float, help="Maximum effective sequence number for cmbuild")
    cm.add_argument("--cminfile", type=Path, metavar="FILE", help="Read extra cmbuild options from FILE")
    cm.add_argument("--skipbuild", action="store_true", help="Skip the covariance model build")

    extra = parser.add_argument_group("output options")
    extra.add_argument("--onlyurl", action="store_true",
                       help="Print the GenBank efetch URL and exit")
    extra.add_argument("--ftrinfo", action="store_true", help="Write a feature information table")
    extra.add_argument("--sgminfo", action="store_true", help="Write a segment information table")
    return parser


def build_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for vadrtools-build command."""
    from vadrtools.build import BuildOptions, efetch_url, run_build, split_list

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.onlyurl:
        print(efetch_url(args.accession, "nuccore", "gb"))
        return 0

    logger = setup_logging("vadrtools", verbose=args.verbose)

    options = BuildOptions(
        force=args.force,
        verbose=args.verbose,
        keep=args.keep,
        stk=args.stk,
        infa=args.infa,
        ingb=args.ingb,
        addminfo=args.addminfo,
        forcelong=args.forcelong,
        fall=args.fall,
        fadd=split_list(args.fadd),
        fskip=split_list(args.fskip),
        qall=args.qall,
        qadd=split_list(args.qadd),
        qftradd=split_list(args.qftradd),
        qskip=split_list(args.qskip),
        noaddgene=args.noaddgene,
        group=args.group,
        subgroup=args.subgroup,
        ttbl=args.ttbl,
        cmn=args.cmn,
        cmp7ml=args.cmp7ml,
        cmere=args.cmere,
        cmeset=args.cmeset,
        cmemaxseq=args.cmemaxseq,
        cminfile=args.cminfile,
        skipbuild=args.skipbuild,
        ftrinfo=args.ftrinfo,
        sgminfo=args.sgminfo,
    )

    logger.info("vadrtools-build: build a VADR model")
    logger.info(f"  Accession: {args.accession}")
    logger.info(f"  Output:    {args.out_dir}")

    try:
        model = run_build(args.accession, args.out_dir, options)
    except (ValueError, FileNotFoundError, FileExistsError, RuntimeError) as e:
        logger.error(str(e))
        return 1

    logger.info(f"✓ Built model {model.name} in {args.out_dir}")
    return 0


def validate_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for vadrtools-validate command."""
    from vadrtools.modelinfo import parse_model_info
    from vadrtools.tabular import validate_tabular
    from vadrtools.validation import validate_model_dir, validate_output_dir

    parser = argparse.ArgumentParser(
        prog="vadrtools-validate",
        description="Validate VADR output directories, tabular files, model directories and model info files",
    )
    parser.add_argument("paths", nargs="+", help="Output directories, model directories or files")
    parser.add_argument("--fasta", help="Input FASTA file, to check sequence lengths")
    parser.add_argument("--strict", action="store_true", help="Treat warnings as errors")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print debug messages")
    args = parser.parse_args(argv)

    logger = setup_logging("vadrtools.validate", verbose=args.verbose)

    all_valid = True
    for target in args.paths:
        path = Path(target)
        if path.is_dir():
            if any(path.glob("*.minfo")) and not any(path.glob("*.vadr.sqa")):
                is_valid, errors, warnings = validate_model_dir(path)
            else:
                is_valid, errors, warnings = validate_output_dir(path, args.fasta, strict=args.strict)
        elif path.suffix == ".minfo":
            errors, warnings = [], []
            try:
                parse_model_info(path)
            except (ValueError, FileNotFoundError) as e:
                errors.append(str(e))
            is_valid = not errors
        else:
            is_valid, errors, warnings = validate_tabular(path, strict=args.strict)

        for warning in warnings:
            logger.warning(f"{target}: {warning}")
        for error in errors:
            logger.error(f"{target}: {error}")
        if is_valid:
            logger.info(f"✓ {target} is valid")
        else:
            logger.error(f"✗ {target} is invalid ({len(errors)} errors)")
            all_valid = False

    return 0 if all_valid else 1


def summarize_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for vadrtools-summarize command."""
    from vadrtools.alerts import default_catalog, parse_code_list
    from vadrtools.tabular import (
        TabularKind,
        format_tabular,
        load_output_dir,
        output_path,
        pass_fail_counts,
        summarize_alerts,
        summarize_models,
        write_tabular,
    )

    parser = argparse.ArgumentParser(
        prog="vadrtools-summarize",
        description="Summarize the results of a VADR annotation run",
    )
    parser.add_argument("out_dir", help="Annotation output directory")
    parser.add_argument("--write", action="store_true",
                        help="Regenerate the .alc and .mdl files from .alt and .sqa")
    parser.add_argument("--alt_pass", metavar="CODES", help="Alert codes that do not cause failure")
    parser.add_argument("--alt_fail", metavar="CODES", help="Alert codes that cause failure")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print debug messages")
    args = parser.parse_args(argv)

    logger = setup_logging("vadrtools.summarize", verbose=args.verbose)

    try:
        catalog = default_catalog()
        catalog.apply_overrides(parse_code_list(args.alt_pass), parse_code_list(args.alt_fail))
        tables = load_output_dir(args.out_dir)
    except (ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1

    sqa = tables.get(TabularKind.SQA)
    if sqa is None:
        logger.error(f"No .sqa file found in {args.out_dir}")
        return 1

    counts = pass_fail_counts(sqa)
    logger.info(f"Sequences: {counts['total']}")
    logger.info(f"  PASS:      {counts['pass']}")
    logger.info(f"  FAIL:      {counts['fail']}")
    logger.info(f"  Annotated: {counts['annotated']}")

    mdl = summarize_models(sqa)
    print(format_tabular(TabularKind.MDL, mdl), end="")

    alt = tables.get(TabularKind.ALT)
    alc = None
    if alt is not None:
        alc = summarize_alerts(alt, catalog)
        print(format_tabular(TabularKind.ALC, alc), end="")

    if args.write:
        write_tabular(output_path(args.out_dir, TabularKind.MDL), TabularKind.MDL, mdl)
        logger.info(f"Wrote {output_path(args.out_dir, TabularKind.MDL)}")
        if alc is not None:
            write_tabular(output_path(args.out_dir, TabularKind.ALC), TabularKind.ALC, alc)
            logger.info(f"Wrote {output_path(args.out_dir, TabularKind.ALC)}")

    return 0


def alerts_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for vadrtools-alerts command."""
    from vadrtools.alerts import default_catalog, parse_code_list

    parser = argparse.ArgumentParser(
        prog="vadrtools-alerts",
        description="List alert codes and whether they cause failure",
    )
    parser.add_argument("--alt_pass", metavar="CODES",
                        help="Comma-separated alert codes that do not cause failure")
    parser.add_argument("--alt_fail", metavar="CODES",
                        help="Comma-separated alert codes that cause failure")
    args = parser.parse_args(argv)

    logger = setup_logging("vadrtools.alerts")

    catalog = default_catalog()
    try:
        catalog.apply_overrides(parse_code_list(args.alt_pass), parse_code_list(args.alt_fail))
    except ValueError as e:
        logger.error(str(e))
        return 1

    catalog.dump(sys.stdout)
    return 0


def config_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for vadrtools-config command."""
    from vadrtools.config import get_config, print_setup_instructions

    parser = argparse.ArgumentParser(
        prog="vadrtools-config",
        description="Show and validate the vadrtools configuration",
    )
    parser.add_argument("--exports", action="store_true", help="Print shell export statements")
    parser.add_argument("--no-build-tools", action="store_true",
                        help="Do not require model building executables")
    args = parser.parse_args(argv)

    logger = setup_logging("vadrtools.config")

    config = get_config()
    if args.exports:
        print(config.to_shell_exports())
        return 0

    logger.info("vadrtools Configuration Validation")
    logger.info("==================================")
    config.print_status()

    is_valid, errors = config.validate(require_build_tools=not args.no_build_tools)

    if errors:
        logger.error("Configuration Errors:")
        for error in errors:
            logger.error(f"  ✗ {error}")
        print_setup_instructions()
        return 1

    logger.info("✓ Configuration is valid")
    return 0


if __name__ == "__main__":
    sys.exit(config_main())
