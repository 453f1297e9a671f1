"""Tests for model info file parsing and writing."""

import sys
from pathlib import Path

import pytest

# Add src to path for vadrtools imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vadrtools.modelinfo.minfo import (
    format_feature_line,
    format_model_line,
    parse_model_info,
    write_model_info,
)
from vadrtools.modelinfo.models import GBNULL, Feature, ModelInfo


MINFO_TEXT = """\
# model info for a small test model
MODEL NC_001477 blastdb:"NC_001477.vadr.protein.fa" cmfile:"NC_001477.vadr.cm" group:"Dengue" length:"10735"
FEATURE NC_001477 type:"gene" coords:"95..10273:+" parent_idx_str:"GBNULL" gene:"POLY"
FEATURE NC_001477 type:"CDS" coords:"95..10273:+" parent_idx_str:"GBNULL" gene:"POLY" product:"polyprotein"
FEATURE NC_001477 type:"mat_peptide" coords:"95..436:+" parent_idx_str:"1" product:"anchored capsid protein ancC"

FEATURE NC_001477 type:"mat_peptide" coords:"437..934:+" parent_idx_str:"1" product:"membrane glycoprotein precursor prM"
"""


@pytest.fixture
def minfo_file(tmp_path):
    """Write a small model info file."""
    path = tmp_path / "test.minfo"
    path.write_text(MINFO_TEXT)
    return path


class TestParseModelInfo:
    """Tests for parse_model_info."""

    def test_parse(self, minfo_file):
        """Test parsing a model and its features."""
        models = parse_model_info(minfo_file)
        assert len(models) == 1
        model = models[0]
        assert model.name == "NC_001477"
        assert model.length == 10735
        assert model.group == "Dengue"
        assert model.subgroup is None
        assert len(model) == 4
        assert model.features[1].type == "CDS"
        assert model.features[1]["product"] == "polyprotein"
        assert model.features[3].coords == "437..934:+"
        assert model.features[0].parent_idx_str == GBNULL

    def test_multiple_models(self, tmp_path):
        """Test several models keep file order."""
        path = tmp_path / "two.minfo"
        path.write_text(
            'MODEL B length:"100"\n'
            'MODEL A length:"200"\n'
            'FEATURE B type:"CDS" coords:"1..99:+"\n'
            'FEATURE A type:"CDS" coords:"1..150:+"\n'
        )
        models = parse_model_info(path)
        assert [m.name for m in models] == ["B", "A"]
        assert models[0].features[0].coords == "1..99:+"
        assert models[1].features[0].coords == "1..150:+"

    def test_empty_value(self, tmp_path):
        """Test an empty quoted value is rejected."""
        path = tmp_path / "empty.minfo"
        path.write_text('MODEL X length:"10" note:""\n')
        with pytest.raises(ValueError, match="unable to parse"):
            parse_model_info(path)

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            parse_model_info(tmp_path / "nope.minfo")

    def test_feature_before_model(self, tmp_path):
        """Test a FEATURE line before its MODEL line is rejected."""
        path = tmp_path / "bad.minfo"
        path.write_text('FEATURE X type:"CDS" coords:"1..9:+"\nMODEL X length:"10"\n')
        with pytest.raises(ValueError, match="before its MODEL line"):
            parse_model_info(path)

    def test_duplicate_model(self, tmp_path):
        """Test duplicate MODEL lines are rejected."""
        path = tmp_path / "bad.minfo"
        path.write_text('MODEL X length:"10"\nMODEL X length:"10"\n')
        with pytest.raises(ValueError, match="multiple MODEL lines"):
            parse_model_info(path)

    def test_bad_line_start(self, tmp_path):
        """Test lines not starting with MODEL or FEATURE are rejected."""
        path = tmp_path / "bad.minfo"
        path.write_text('MODEL X length:"10"\nGENE X type:"gene"\n')
        with pytest.raises(ValueError, match="MODEL or FEATURE"):
            parse_model_info(path)

    def test_unquoted_value(self, tmp_path):
        """Test unquoted values are rejected."""
        path = tmp_path / "bad.minfo"
        path.write_text("MODEL X length:10\n")
        with pytest.raises(ValueError, match="key:value"):
            parse_model_info(path)

    def test_duplicate_key(self, tmp_path):
        """Test a key repeated on one line is rejected."""
        path = tmp_path / "bad.minfo"
        path.write_text('MODEL X length:"10" length:"20"\n')
        with pytest.raises(ValueError, match="more than once"):
            parse_model_info(path)

    def test_missing_required_keys(self, tmp_path):
        """Test missing required model and feature keys."""
        path = tmp_path / "bad.minfo"
        path.write_text('MODEL X cmfile:"x.cm"\n')
        with pytest.raises(ValueError, match="length"):
            parse_model_info(path)

        path.write_text('MODEL X length:"10"\nFEATURE X type:"CDS"\n')
        with pytest.raises(ValueError, match="coords"):
            parse_model_info(path)

    def test_custom_required_keys(self, tmp_path):
        """Test overriding required keys."""
        path = tmp_path / "ok.minfo"
        path.write_text('MODEL X cmfile:"x.cm"\nFEATURE X type:"CDS"\n')
        models = parse_model_info(path, required_model_keys=(), required_feature_keys=("type",))
        assert models[0].features[0].type == "CDS"


class TestFormatLines:
    """Tests for MODEL and FEATURE line formatting."""

    def test_model_line_sorted(self):
        """Test MODEL keys are sorted."""
        model = ModelInfo(name="X", attributes={"length": "10", "cmfile": "x.cm"})
        assert format_model_line(model) == 'MODEL X cmfile:"x.cm" length:"10"'

    def test_feature_line_order(self):
        """Test type, coords and parent_idx_str come first."""
        ftr = Feature(attributes={
            "product": "p",
            "coords": "1..9:+",
            "gene": "g",
            "type": "CDS",
            "parent_idx_str": GBNULL,
        })
        assert format_feature_line("X", ftr) == (
            'FEATURE X type:"CDS" coords:"1..9:+" parent_idx_str:"GBNULL" gene:"g" product:"p"'
        )

    def test_derived_keys_skipped(self):
        """Test derived keys are never written."""
        ftr = Feature(attributes={
            "type": "CDS",
            "coords": "1..9:+",
            "length": "9",
            "outname": "CDS.1",
            "location": "1..9",
        })
        assert format_feature_line("X", ftr) == 'FEATURE X type:"CDS" coords:"1..9:+"'

    def test_quote_in_value(self):
        """Test values with double quotes are rejected."""
        ftr = Feature(attributes={"type": "CDS", "coords": "1..9:+", "note": 'say "hi"'})
        with pytest.raises(ValueError, match="double quote"):
            format_feature_line("X", ftr)

    def test_empty_value(self):
        """Test empty values are rejected."""
        ftr = Feature(attributes={"type": "CDS", "coords": "1..9:+", "note": ""})
        with pytest.raises(ValueError, match="empty"):
            format_feature_line("X", ftr)


class TestWriteModelInfo:
    """Tests for write_model_info."""

    def test_write_then_parse(self, minfo_file, tmp_path):
        """Test a parsed file survives writing and parsing again."""
        models = parse_model_info(minfo_file)
        out = tmp_path / "out.minfo"
        write_model_info(out, models)
        again = parse_model_info(out)
        assert again[0].attributes == models[0].attributes
        assert [f.attributes for f in again[0].features] == [f.attributes for f in models[0].features]

    def test_written_text(self, tmp_path):
        """Test the exact written lines."""
        model = ModelInfo(
            name="X",
            attributes={"length": "10"},
            features=[Feature(attributes={"type": "CDS", "coords": "1..9:+", "parent_idx_str": GBNULL})],
        )
        out = tmp_path / "out.minfo"
        write_model_info(out, [model])
        assert out.read_text() == (
            'MODEL X length:"10"\n'
            'FEATURE X type:"CDS" coords:"1..9:+" parent_idx_str:"GBNULL"\n'
        )

    def test_coords_beyond_length(self, tmp_path):
        """Test features past the model end are rejected."""
        model = ModelInfo(
            name="X",
            attributes={"length": "10"},
            features=[Feature(attributes={"type": "CDS", "coords": "1..20:+"})],
        )
        with pytest.raises(ValueError, match="exceed model length"):
            write_model_info(tmp_path / "out.minfo", [model])
        assert not (tmp_path / "out.minfo").exists()
