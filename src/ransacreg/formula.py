import re
import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

_POWER_TERM = re.compile(r'^I\(\s*(\w+)\s*\^\s*(\d+)\s*\)$')
_NAME_TERM = re.compile(r'^\w+$')


class FormulaParser:
    """
    Parser for R-style formulas with support for:
    - Basic terms: y ~ x1 + x2
    - Powers: I(x^2)
    - Intercept removal: y ~ x1 - 1 or y ~ x1 + 0
    """

    def __init__(self, formula: str):
        """
        Initialize formula parser.

        Parameters:
        -----------
        formula : str
            R-style formula string (e.g., "y ~ x1 + x2 + I(x1^2)")
        """
        self.formula = formula.strip()
        self.target: Optional[str] = None
        self.terms: List[str] = []
        self.has_intercept = True

        self._parse_formula()

    def _parse_formula(self):
        """Parse the formula string."""
        if '~' not in self.formula:
            raise ValueError(f"Formula must contain '~': {self.formula}")

        parts = self.formula.split('~')
        if len(parts) != 2:
            raise ValueError(f"Formula must have exactly one '~': {self.formula}")

        self.target = parts[0].strip()
        if not _NAME_TERM.match(self.target):
            raise ValueError(f"Invalid response variable: '{self.target}'")

        right_side = parts[1].strip()

        # Check for intercept removal
        if re.search(r'-\s*1\b', right_side) or re.search(r'(^|\+)\s*0\s*(\+|$)', right_side):
            self.has_intercept = False
            right_side = re.sub(r'-\s*1\b', '', right_side)
            right_side = re.sub(r'(^|\+)\s*0\s*(?=\+|$)', r'\1', right_side)

        for term in right_side.split('+'):
            term = term.strip()
            if not term or term == '1':
                continue
            if not (_NAME_TERM.match(term) or _POWER_TERM.match(term)):
                raise ValueError(f"Unsupported formula term: '{term}'")
            if term in self.terms:
                logger.warning(f"Duplicate formula term ignored: {term}")
                continue
            self.terms.append(term)

        if not self.terms and not self.has_intercept:
            raise ValueError(f"Formula has no predictors: {self.formula}")

    @property
    def features(self) -> List[str]:
        """Base data columns referenced by the right-hand side, in order."""
        columns = []
        for term in self.terms:
            column, _ = self.split_term(term)
            if column not in columns:
                columns.append(column)
        return columns

    @staticmethod
    def split_term(term: str) -> Tuple[str, int]:
        """Return (column, power) for a term."""
        match = _POWER_TERM.match(term)
        if match:
            return match.group(1), int(match.group(2))
        return term, 1

    def get_feature_names(self) -> List[str]:
        """Design matrix column names, intercept first when present."""
        names = list(self.terms)
        if self.has_intercept:
            names = ['intercept'] + names
        return names

    def to_dict(self) -> Dict[str, Any]:
        """Convert parsed formula to dictionary representation."""
        return {
            'formula': self.formula,
            'target': self.target,
            'terms': self.terms,
            'features': self.features,
            'has_intercept': self.has_intercept,
        }

    @classmethod
    def parse(cls, formula: str) -> 'FormulaParser':
        """Convenience method to parse a formula."""
        return cls(formula)
