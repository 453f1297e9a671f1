"""Tests for the model build pipeline."""

import io
import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path for vadrtools imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from Bio import SeqIO

from conftest import REFERENCE_SEQ, genbank_text
from vadrtools.build import (
    MAX_LENGTH,
    BuildOptions,
    BuildPaths,
    CommandRunner,
    build_nucleotide_models,
    check_stockholm,
    cmbuild_command,
    convert_ribosomal_slippage,
    extract_coords,
    features_from_record,
    fetch_to_file,
    load_reference_fasta,
    location_to_coords,
    prepare_output_dir,
    run_build,
    select_feature_types,
    select_qualifiers,
    split_list,
    translate_cds,
    write_consensus_fasta,
    write_stockholm,
)
from vadrtools.build.ncbi import efetch_url
from vadrtools.modelinfo import Feature, ModelInfo, parse_model_info


def dry_runner():
    return CommandRunner(dry_run=True)


class TestGenbank:
    """Tests for GenBank record conversion."""

    def test_features_from_record(self, reference_files):
        """Test features, coords and joined qualifiers."""
        _, gb = reference_files
        record = SeqIO.read(str(gb), "genbank")
        features = features_from_record(record)
        assert [f.type for f in features] == ["gene", "CDS", "mat_peptide", "mat_peptide", "misc_feature"]
        assert features[1].coords == "4..57:+"
        assert features[1]["product"] == "polyprotein"
        assert "5p_trunc" not in features[1]

    def test_location_truncation(self):
        """Test partial locations set the truncation flags."""
        from Bio.SeqFeature import AfterPosition, BeforePosition, SimpleLocation

        location = SimpleLocation(BeforePosition(0), AfterPosition(30), strand=1)
        coords, trunc5, trunc3 = location_to_coords(location)
        assert coords == "1..30:+"
        assert trunc5 and trunc3

    def test_location_minus_join(self):
        """Test a complemented join keeps the 5' to 3' order."""
        from Bio.SeqFeature import SimpleLocation

        location = SimpleLocation(19, 30, strand=-1) + SimpleLocation(0, 10, strand=-1)
        coords, trunc5, trunc3 = location_to_coords(location)
        assert coords == "30..20:-,10..1:-"
        assert not trunc5 and not trunc3

    def test_flag_qualifier(self):
        """Test flag qualifiers get a non-empty value."""
        from Bio.Seq import Seq
        from Bio.SeqFeature import SeqFeature, SimpleLocation
        from Bio.SeqRecord import SeqRecord

        record = SeqRecord(Seq(REFERENCE_SEQ), id="TEST01.1")
        record.features.append(SeqFeature(
            SimpleLocation(3, 57, strand=1), type="CDS",
            qualifiers={"product": ["polyprotein"], "ribosomal_slippage": [""]},
        ))
        features = features_from_record(record)
        assert features[0]["ribosomal_slippage"] == "yes"
        assert features[0]["product"] == "polyprotein"

    def test_extract_and_translate(self):
        """Test CDS extraction and translation."""
        nucleotides = extract_coords(REFERENCE_SEQ.upper(), "4..57:+")
        assert len(nucleotides) == 54
        assert translate_cds(nucleotides) == "M" + "K" * 16

    def test_extract_minus(self):
        """Test - strand extraction is reverse complemented."""
        assert extract_coords("AACCGGTT", "4..1:-") == "GGTT"


class TestOptions:
    """Tests for BuildOptions validation."""

    def test_defaults_valid(self):
        """Test default options are valid."""
        BuildOptions().validate()

    @pytest.mark.parametrize("kwargs,message", [
        ({"subgroup": "A"}, "--subgroup requires --group"),
        ({"fall": True, "fadd": ["ncRNA"]}, "--fall"),
        ({"qall": True, "qadd": ["note"]}, "--qall"),
        ({"qftradd": ["CDS"]}, "--qftradd requires --qadd"),
        ({"qadd": ["note"], "qskip": ["note"]}, "both --qadd and --qskip"),
        ({"fadd": ["ncRNA"], "fskip": ["ncRNA"]}, "both --fadd and --fskip"),
        ({"ttbl": 0}, "--ttbl"),
    ])
    def test_invalid_combinations(self, kwargs, message):
        """Test incompatible option combinations."""
        with pytest.raises(ValueError, match=message):
            BuildOptions(**kwargs).validate()

    @pytest.mark.parametrize("kwargs", [
        {"fall": True, "fskip": ["gene"]},
        {"qall": True, "qskip": ["note"]},
    ])
    def test_all_with_skip(self, kwargs):
        """Test --fall and --qall combine with their skip lists."""
        BuildOptions(**kwargs).validate()

    def test_missing_input_file(self, tmp_path):
        """Test input files must exist."""
        with pytest.raises(FileNotFoundError, match="--infa"):
            BuildOptions(infa=tmp_path / "nope.fa").validate()

    def test_split_list(self):
        """Test comma-separated option values."""
        assert split_list("CDS, gene,") == ["CDS", "gene"]
        assert split_list(None) == []


class TestSelection:
    """Tests for feature type and qualifier selection."""

    def make_features(self):
        return [
            Feature(attributes={"type": "gene", "coords": "1..60:+", "gene": "POLY", "note": "n"}),
            Feature(attributes={"type": "CDS", "coords": "4..57:+", "product": "p", "note": "n"}),
            Feature(attributes={"type": "CDS", "coords": "1..30:+", "5p_trunc": "yes"}),
            Feature(attributes={"type": "misc_feature", "coords": "58..60:+"}),
        ]

    def test_default_types(self):
        """Test default types are kept and truncated CDS dropped."""
        selected = select_feature_types(BuildOptions(), self.make_features())
        assert [f.type for f in selected] == ["gene", "CDS"]

    def test_fadd_fskip(self):
        """Test adding and skipping feature types."""
        selected = select_feature_types(BuildOptions(fadd=["misc_feature"], fskip=["gene"]), self.make_features())
        assert [f.type for f in selected] == ["CDS", "misc_feature"]

    def test_fall(self):
        """Test keeping every type still drops truncated CDS."""
        selected = select_feature_types(BuildOptions(fall=True), self.make_features())
        assert len(selected) == 3

    def test_fall_fskip(self):
        """Test --fall keeps every type except those skipped."""
        selected = select_feature_types(BuildOptions(fall=True, fskip=["gene"]), self.make_features())
        assert [f.type for f in selected] == ["CDS", "misc_feature"]

    def test_default_qualifiers(self):
        """Test unselected qualifiers are removed."""
        features = self.make_features()
        select_qualifiers(BuildOptions(), features)
        assert "note" not in features[0]
        assert features[0]["gene"] == "POLY"

    def test_qadd_restricted_by_qftradd(self):
        """Test --qftradd limits --qadd to the listed types."""
        features = self.make_features()
        select_qualifiers(BuildOptions(qadd=["note"], qftradd=["CDS"]), features)
        assert "note" not in features[0]
        assert features[1]["note"] == "n"

    def test_qall(self):
        """Test --qall keeps every qualifier."""
        features = self.make_features()
        select_qualifiers(BuildOptions(qall=True), features)
        assert features[0]["note"] == "n"
        assert features[1]["note"] == "n"

    def test_qall_qskip(self):
        """Test --qall keeps every qualifier except those skipped."""
        features = self.make_features()
        select_qualifiers(BuildOptions(qall=True, qskip=["note", "product"]), features)
        assert "note" not in features[0]
        assert "product" not in features[1]
        assert features[0]["gene"] == "POLY"

    def test_qskip(self):
        """Test skipping a default qualifier."""
        features = self.make_features()
        select_qualifiers(BuildOptions(qskip=["product"]), features)
        assert "product" not in features[1]

    def test_ribosomal_slippage(self):
        """Test ribosomal_slippage becomes an exception qualifier."""
        features = [
            Feature(attributes={"type": "CDS", "coords": "1..9:+", "ribosomal_slippage": "yes"}),
            Feature(attributes={"type": "CDS", "coords": "1..9:+", "ribosomal_slippage": "yes",
                                "exception": "RNA editing"}),
        ]
        convert_ribosomal_slippage(BuildOptions(), features)
        assert features[0]["exception"] == "ribosomal slippage"
        assert features[1]["exception"] == "RNA editing:GBSEP:ribosomal slippage"
        assert "ribosomal_slippage" not in features[0]

    @pytest.mark.parametrize("options", [
        BuildOptions(qall=True),
        BuildOptions(qadd=["ribosomal_slippage"]),
    ])
    def test_ribosomal_slippage_kept(self, options):
        """Test the flag survives when it was asked for."""
        features = [Feature(attributes={"type": "CDS", "coords": "1..9:+", "ribosomal_slippage": "yes"})]
        convert_ribosomal_slippage(options, features)
        select_qualifiers(options, features)
        assert features[0]["exception"] == "ribosomal slippage"
        assert features[0]["ribosomal_slippage"] == "yes"


class TestReferenceInput:
    """Tests for reference FASTA and Stockholm handling."""

    def test_load_reference_fasta(self, reference_files):
        """Test the accession may omit the version."""
        fasta, _ = reference_files
        record = load_reference_fasta(fasta, "TEST01")
        assert record.id == "TEST01.1"

    def test_wrong_accession(self, reference_files):
        """Test a different accession is rejected."""
        fasta, _ = reference_files
        with pytest.raises(ValueError, match="does not match"):
            load_reference_fasta(fasta, "TEST0")

    def test_multiple_sequences(self, tmp_path):
        """Test multi-sequence FASTA is rejected."""
        fasta = tmp_path / "two.fa"
        fasta.write_text(">A.1\nACGT\n>B.1\nACGT\n")
        with pytest.raises(ValueError, match="exactly 1"):
            load_reference_fasta(fasta, "A")

    def test_stockholm_round_trip(self, tmp_path, reference_files):
        """Test a written alignment passes the check without structure."""
        fasta, _ = reference_files
        record = load_reference_fasta(fasta, "TEST01")
        stk = tmp_path / "ref.stk"
        write_stockholm(stk, record)
        assert check_stockholm(stk, str(record.seq)) is False

    def test_stockholm_with_structure(self, tmp_path):
        """Test SS_cons is detected and U matches T."""
        stk = tmp_path / "ss.stk"
        stk.write_text("# STOCKHOLM 1.0\n\nseq1 ACGUACGU\n#=GC SS_cons <<....>>\n//\n")
        assert check_stockholm(stk, "ACGTACGT") is True

    def test_stockholm_gaps(self, tmp_path):
        """Test gapped alignments are rejected."""
        stk = tmp_path / "gap.stk"
        stk.write_text("# STOCKHOLM 1.0\n\nseq1 ACG-ACGU\n//\n")
        with pytest.raises(ValueError, match="gaps"):
            check_stockholm(stk, "ACGACGT")

    def test_stockholm_mismatch(self, tmp_path):
        """Test a different sequence is rejected."""
        stk = tmp_path / "bad.stk"
        stk.write_text("# STOCKHOLM 1.0\n\nseq1 AAAAAAAA\n//\n")
        with pytest.raises(ValueError, match="does not match"):
            check_stockholm(stk, "ACGTACGT")


class TestCommands:
    """Tests for external command assembly."""

    def test_cmbuild_command(self, tmp_path):
        """Test cmbuild options and long-model calibration."""
        paths = BuildPaths(tmp_path / "X")
        model = ModelInfo(name="X.1", attributes={"length": "20000"})
        cmd = cmbuild_command(paths, model, BuildOptions(cmn=100, cmp7ml=True), has_ss=True)
        assert cmd[:3] == ["cmbuild", "-n", "X.1"]
        assert "--noss" not in cmd
        assert cmd[cmd.index("--EgfN") + 1] == "100"
        assert "--p7ml" in cmd
        assert cmd[cmd.index("--Egcmult") + 1] == "1.25000"
        assert cmd[-2:] == [str(paths.path("cm")), str(paths.path("stk"))]

    def test_cmbuild_noss_short(self, tmp_path):
        """Test --noss without structure, no calibration for short models."""
        paths = BuildPaths(tmp_path / "X")
        model = ModelInfo(name="X.1", attributes={"length": "100"})
        cmd = cmbuild_command(paths, model, BuildOptions(), has_ss=False)
        assert "--noss" in cmd
        assert "--Egcmult" not in cmd

    def test_cminfile(self, tmp_path):
        """Test extra options are read from --cminfile."""
        extra = tmp_path / "cm.opts"
        extra.write_text("--wnone\n--enone\n")
        paths = BuildPaths(tmp_path / "X")
        model = ModelInfo(name="X.1", attributes={"length": "100"})
        cmd = cmbuild_command(paths, model, BuildOptions(cminfile=extra), has_ss=False)
        assert cmd[-4:-2] == ["--wnone", "--enone"]

    def test_consensus_renamed(self, tmp_path):
        """Test the cmemit consensus is rewritten under the model name."""
        cseq = tmp_path / "x.nt-cseq.fa"
        cseq.write_text(">X.1-cseq\n" + "ACGU" * 20 + "\n")
        out = tmp_path / "x.nt.fa"
        write_consensus_fasta(cseq, out, "X.1")
        lines = out.read_text().splitlines()
        assert lines[0] == ">X.1"
        assert len(lines[1]) == 60
        assert "".join(lines[1:]) == "ACGU" * 20

    def test_nucleotide_models(self, tmp_path):
        """Test the nucleotide BLAST database is built from the renamed consensus."""
        paths = BuildPaths(tmp_path / "X")
        paths.out_dir.mkdir()
        model = ModelInfo(name="X.1", attributes={"length": "100"})

        def fake_run(cmd, stdout=None, **kwargs):
            if cmd[0] == "cmemit":
                stdout.write(">X.1-cseq\nACGUACGU\n")
            return subprocess.CompletedProcess(cmd, 0, "", "")

        runner = CommandRunner()
        with patch.object(runner, "executable", side_effect=lambda name: name):
            with patch("vadrtools.build.external.subprocess.run", side_effect=fake_run):
                build_nucleotide_models(paths, runner, model, BuildOptions(), has_ss=False)

        assert [cmd[0] for cmd in runner.history] == ["cmbuild", "cmpress", "cmemit", "makeblastdb"]
        assert paths.path("nt.fa").read_text() == ">X.1\nACGUACGU\n"
        assert not paths.path("nt-cseq.fa").exists()

    def test_runner_records_commands(self, tmp_path):
        """Test dry-run commands are recorded in the command file."""
        cmd_file = tmp_path / "x.cmd"
        runner = CommandRunner(cmd_file, dry_run=True)
        result = runner.run(["cmpress", tmp_path / "my model.cm"])
        assert result.returncode == 0
        assert runner.history[0][0] == "cmpress"
        assert "'" in cmd_file.read_text()

    def test_runner_failure(self, tmp_path):
        """Test a failing command raises RuntimeError."""
        runner = CommandRunner(dry_run=False)
        with patch.object(runner, "executable", return_value="false"):
            with pytest.raises(RuntimeError, match="exit status"):
                runner.run(["false"])


class TestFetch:
    """Tests for NCBI fetching."""

    def test_efetch_url(self):
        """Test the GenBank efetch URL."""
        url = efetch_url("NC_039477")
        assert "db=nuccore" in url
        assert "id=NC_039477" in url
        assert "rettype=gb" in url

    def test_retry_then_success(self, tmp_path):
        """Test a failed attempt is retried."""
        out = tmp_path / "x.fa"
        responses = [OSError("connection reset"), io.StringIO(">x\nACGT\n")]
        with patch("vadrtools.build.ncbi.Entrez.efetch", side_effect=responses) as efetch:
            fetch_to_file(out, "x", attempts=3, sleep=0)
        assert efetch.call_count == 2
        assert out.read_text() == ">x\nACGT\n"

    def test_all_attempts_fail(self, tmp_path):
        """Test RuntimeError after every attempt fails."""
        with patch("vadrtools.build.ncbi.Entrez.efetch", side_effect=OSError("down")):
            with pytest.raises(RuntimeError, match="after 2 attempts"):
                fetch_to_file(tmp_path / "x.fa", "x", attempts=2, sleep=0)

    def test_empty_response(self, tmp_path):
        """Test empty responses count as failures."""
        with patch("vadrtools.build.ncbi.Entrez.efetch", side_effect=lambda **kw: io.StringIO("")):
            with pytest.raises(RuntimeError, match="empty response"):
                fetch_to_file(tmp_path / "x.fa", "x", attempts=2, sleep=0)


class TestRunBuild:
    """Tests for the full build pipeline with external tools mocked."""

    def test_skipbuild(self, tmp_path, reference_files):
        """Test a build from local files without the covariance model."""
        fasta, gb = reference_files
        out = tmp_path / "TEST01"
        options = BuildOptions(infa=fasta, ingb=gb, skipbuild=True, group="Test", ftrinfo=True, sgminfo=True)
        model = run_build("TEST01", out, options, runner=dry_runner())

        assert model.name == "TEST01.1"
        assert [f.type for f in model.features] == ["gene", "CDS", "mat_peptide", "mat_peptide"]
        assert model.features[1]["gene"] == "POLY"
        assert model.features[2].parent_idx_str == "1"
        assert model.features[2].three_pa_ftr_idx == 3

        models = parse_model_info(out / "TEST01.vadr.minfo")
        assert len(models) == 1
        attributes = models[0].attributes
        assert attributes["length"] == "60"
        assert attributes["cmfile"] == "TEST01.vadr.cm"
        assert attributes["blastdb"] == "TEST01.vadr.protein.fa"
        assert attributes["group"] == "Test"
        assert "transl_table" not in attributes

        proteins = list(SeqIO.parse(str(out / "TEST01.vadr.protein.fa"), "fasta"))
        assert [p.id for p in proteins] == ["TEST01.1/4..57:+"]
        assert str(proteins[0].seq) == "M" + "K" * 16

        commands = (out / "TEST01.vadr.cmd").read_text()
        assert "makeblastdb" in commands
        assert "hmmbuild" in commands
        assert "cmbuild" not in commands

        for suffix in ("fa", "gb", "stk", "log", "filelist", "ftrinfo", "sgminfo"):
            assert (out / f"TEST01.vadr.{suffix}").exists()
        assert "TEST01.vadr.minfo" in (out / "TEST01.vadr.filelist").read_text()

    def test_full_build_commands(self, tmp_path, reference_files):
        """Test the covariance model commands are run without --skipbuild."""
        fasta, gb = reference_files
        out = tmp_path / "TEST01"
        runner = dry_runner()
        run_build("TEST01", out, BuildOptions(infa=fasta, ingb=gb, ttbl=11), runner=runner)
        programs = [cmd[0] for cmd in runner.history]
        assert programs[-4:] == ["cmbuild", "cmpress", "cmemit", "makeblastdb"]
        models = parse_model_info(out / "TEST01.vadr.minfo")
        assert models[0].attributes["transl_table"] == "11"

    def test_no_cds(self, tmp_path, reference_files):
        """Test blastdb and transl_table are only written with CDS."""
        fasta, gb = reference_files
        out = tmp_path / "TEST01"
        options = BuildOptions(infa=fasta, ingb=gb, skipbuild=True, ttbl=11, fskip=["CDS", "mat_peptide"])
        model = run_build("TEST01", out, options, runner=dry_runner())
        assert [f.type for f in model.features] == ["gene"]
        attributes = parse_model_info(out / "TEST01.vadr.minfo")[0].attributes
        assert "transl_table" not in attributes
        assert "blastdb" not in attributes

    def test_fetches_when_no_local_files(self, tmp_path, reference_files):
        """Test the FASTA and GenBank record are fetched by default."""
        fasta, _ = reference_files

        def fake_fetch(path, accession, db="nuccore", rettype="fasta"):
            if rettype == "fasta":
                Path(path).write_text(fasta.read_text())
            else:
                Path(path).write_text(genbank_text())
            return Path(path)

        out = tmp_path / "TEST01"
        with patch("vadrtools.build.pipeline.fetch_to_file", side_effect=fake_fetch) as fetch:
            run_build("TEST01", out, BuildOptions(skipbuild=True), runner=dry_runner())
        assert [call.kwargs["rettype"] for call in fetch.call_args_list] == ["fasta", "gb"]
        assert fetch.call_args_list[1].args[1] == "TEST01.1"

    def test_existing_output_dir(self, tmp_path, reference_files):
        """Test an existing directory needs force."""
        fasta, gb = reference_files
        out = tmp_path / "TEST01"
        out.mkdir()
        with pytest.raises(FileExistsError):
            run_build("TEST01", out, BuildOptions(infa=fasta, ingb=gb, skipbuild=True), runner=dry_runner())
        run_build("TEST01", out, BuildOptions(infa=fasta, ingb=gb, skipbuild=True, force=True),
                  runner=dry_runner())
        assert (out / "TEST01.vadr.minfo").exists()

    def test_length_limit(self, tmp_path):
        """Test sequences over the maximum length are rejected."""
        fasta = tmp_path / "long.fa"
        fasta.write_text(">LONG.1\n" + "A" * (MAX_LENGTH + 1) + "\n")
        with pytest.raises(ValueError, match="--forcelong"):
            run_build("LONG", tmp_path / "LONG", BuildOptions(infa=fasta, skipbuild=True), runner=dry_runner())
        assert (tmp_path / "LONG" / "LONG.vadr.filelist").exists()

    def test_genbank_length_mismatch(self, tmp_path, reference_files):
        """Test the GenBank record must match the FASTA length."""
        _, gb = reference_files
        fasta = tmp_path / "short.fa"
        fasta.write_text(">TEST01.1\nACGT\n")
        with pytest.raises(ValueError, match="does not match FASTA length"):
            run_build("TEST01", tmp_path / "TEST01", BuildOptions(infa=fasta, ingb=gb, skipbuild=True),
                      runner=dry_runner())

    def test_addminfo(self, tmp_path, reference_files):
        """Test extra feature information is merged in."""
        fasta, gb = reference_files
        extra = tmp_path / "extra.minfo"
        extra.write_text('MODEL TEST01.1\nFEATURE TEST01.1 type:"CDS" coords:"4..57:+" xmaxdel:"12"\n')
        out = tmp_path / "TEST01"
        model = run_build("TEST01", out, BuildOptions(infa=fasta, ingb=gb, addminfo=extra, skipbuild=True),
                          runner=dry_runner())
        assert model.features[1]["xmaxdel"] == "12"
        text = (out / "TEST01.vadr.minfo").read_text()
        assert 'xmaxdel:"12"' in text

    def test_prepare_output_dir(self, tmp_path):
        """Test directory creation and forced replacement."""
        out = tmp_path / "new"
        prepare_output_dir(out)
        (out / "old.txt").write_text("x")
        prepare_output_dir(out, force=True)
        assert not (out / "old.txt").exists()
