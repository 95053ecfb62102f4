"""Severity, category and rule-family tables for the built-in adapters.

Rule-family tables are partial by nature: only rules with a clear cross-tool
counterpart are mapped. Unmapped rules still take part in location-based
correlation.
"""

from analysis_hub.analysis.taxonomy import AdapterTables
from analysis_hub.models.issue import AnalysisType, Severity

SEMGREP_TABLES = AdapterTables(
    severity_map={
        "error": Severity.HIGH,
        "warning": Severity.MEDIUM,
        "info": Severity.LOW,
        "inventory": Severity.INFO,
        "experiment": Severity.INFO,
        "critical": Severity.CRITICAL,
        "high": Severity.HIGH,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
    },
    default_analysis_type=AnalysisType.QUALITY,
    category_map={
        "security": AnalysisType.SECURITY,
        "correctness": AnalysisType.CORRECTNESS,
        "performance": AnalysisType.PERFORMANCE,
        "best-practice": AnalysisType.QUALITY,
        "maintainability": AnalysisType.ARCHITECTURE_DEBT,
        "portability": AnalysisType.QUALITY,
    },
    family_patterns=(
        (r"sql[-_.]?injection|sqli|formatted-sql|tainted-sql", "sql-injection"),
        (r"command[-_.]?injection|subprocess-shell|dangerous-system-call|os-system", "command-injection"),
        (r"\bxss\b|cross-site-scripting|unescaped|innerhtml", "xss"),
        (r"path[-_.]?traversal", "path-traversal"),
        (r"hardcoded[-_.]?(secret|password|token|credential)|detected-.*-key", "hardcoded-secret"),
        (r"insecure[-_.]?deserializ|pickle|yaml-load", "insecure-deserialization"),
        (r"null[-_.]?(deref|pointer)|none-deref", "null-deref"),
        (r"\bssrf\b|server-side-request-forgery", "ssrf"),
    ),
)

ESLINT_TABLES = AdapterTables(
    severity_map={
        "error": Severity.HIGH,
        "warning": Severity.MEDIUM,
        "fatal": Severity.HIGH,
        "2": Severity.HIGH,
        "1": Severity.MEDIUM,
    },
    default_analysis_type=AnalysisType.QUALITY,
    category_map={
        "security": AnalysisType.SECURITY,
        "security-node": AnalysisType.SECURITY,
        "no-unsanitized": AnalysisType.SECURITY,
        "react-hooks": AnalysisType.CORRECTNESS,
        "import": AnalysisType.ARCHITECTURE_DESIGN,
        "sonarjs": AnalysisType.ARCHITECTURE_DEBT,
        "parse": AnalysisType.CORRECTNESS,
    },
    rule_families={
        "security/detect-non-literal-fs-filename": "path-traversal",
        "security/detect-child-process": "command-injection",
        "security/detect-eval-with-expression": "code-injection",
        "no-eval": "code-injection",
        "no-implied-eval": "code-injection",
        "no-new-func": "code-injection",
        "no-unsanitized/property": "xss",
        "no-unsanitized/method": "xss",
        "@typescript-eslint/no-non-null-assertion": "null-deref",
        "no-unsafe-optional-chaining": "null-deref",
        "import/no-cycle": "dependency-cycle",
    },
)

BANDIT_TABLES = AdapterTables(
    severity_map={
        "high": Severity.HIGH,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
        "undefined": Severity.INFO,
    },
    default_analysis_type=AnalysisType.SECURITY,
    rule_families={
        "b608": "sql-injection",
        "b602": "command-injection",
        "b603": "command-injection",
        "b604": "command-injection",
        "b605": "command-injection",
        "b607": "command-injection",
        "b105": "hardcoded-secret",
        "b106": "hardcoded-secret",
        "b107": "hardcoded-secret",
        "b301": "insecure-deserialization",
        "b403": "insecure-deserialization",
        "b506": "insecure-deserialization",
        "b307": "code-injection",
        "b102": "code-injection",
        "b310": "ssrf",
        "b113": "ssrf",
        "b303": "weak-crypto",
        "b324": "weak-crypto",
        "b501": "tls-verification",
    },
)

CODEQL_TABLES = AdapterTables(
    severity_map={
        "critical": Severity.CRITICAL,
        "high": Severity.HIGH,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
        "error": Severity.HIGH,
        "warning": Severity.MEDIUM,
        "note": Severity.LOW,
        "recommendation": Severity.LOW,
        "none": Severity.INFO,
    },
    default_analysis_type=AnalysisType.SEMANTIC,
    category_map={
        "security": AnalysisType.SECURITY,
        "correctness": AnalysisType.CORRECTNESS,
        "reliability": AnalysisType.CORRECTNESS,
        "performance": AnalysisType.PERFORMANCE,
        "maintainability": AnalysisType.ARCHITECTURE_DEBT,
        "readability": AnalysisType.QUALITY,
    },
    family_patterns=(
        (r"sql-injection", "sql-injection"),
        (r"command-line-injection|command-injection|shell-command", "command-injection"),
        (r"\bxss\b|reflected-xss|stored-xss|dom-based-xss", "xss"),
        (r"path-injection|tainted-path|zipslip", "path-traversal"),
        (r"hardcoded-credentials", "hardcoded-secret"),
        (r"unsafe-deserialization", "insecure-deserialization"),
        (r"code-injection|unsafe-eval", "code-injection"),
        (r"request-forgery", "ssrf"),
        (r"null-dereference|null-argument|nullness", "null-deref"),
        (r"overflow-buffer|overrun|out-of-bounds|index-out-of-bounds", "array-bounds"),
        (r"integer-overflow|arithmetic-overflow|tainted-arithmetic", "integer-overflow"),
        (r"weak-cryptographic|broken-crypto|weak-sensitive-data-hashing", "weak-crypto"),
    ),
)

CBMC_TABLES = AdapterTables(
    severity_map={
        "failure": Severity.HIGH,
        "success": Severity.MEDIUM,
        "unknown": Severity.MEDIUM,
        "error": Severity.HIGH,
    },
    default_analysis_type=AnalysisType.CORRECTNESS,
    rule_families={
        "array_bounds": "array-bounds",
        "bounds": "array-bounds",
        "pointer_dereference": "null-deref",
        "pointer": "null-deref",
        "overflow": "integer-overflow",
        "undefined-shift": "integer-overflow",
        "division-by-zero": "division-by-zero",
        "memory-leak": "memory-leak",
        "unwind": "unbounded-loop",
    },
)

SONARQUBE_TABLES = AdapterTables(
    severity_map={
        "blocker": Severity.CRITICAL,
        "critical": Severity.HIGH,
        "major": Severity.MEDIUM,
        "minor": Severity.LOW,
        "info": Severity.INFO,
        # clean-code taxonomy introduced in 10.x
        "high": Severity.HIGH,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
    },
    default_analysis_type=AnalysisType.QUALITY,
    category_map={
        "vulnerability": AnalysisType.SECURITY,
        "security_hotspot": AnalysisType.SECURITY,
        "bug": AnalysisType.CORRECTNESS,
        "code_smell": AnalysisType.QUALITY,
    },
    family_patterns=(
        (r":s2259$", "null-deref"),
        (r":s2583$|:s2589$", "dead-condition"),
        (r":s3649$|:s2077$", "sql-injection"),
        (r":s2076$|:s4721$", "command-injection"),
        (r":s5131$", "xss"),
        (r":s2083$|:s6096$", "path-traversal"),
        (r":s2068$|:s6418$", "hardcoded-secret"),
        (r":s5135$", "insecure-deserialization"),
        (r":s5144$", "ssrf"),
        (r":s3518$", "division-by-zero"),
        (r":s6466$|:s3981$", "array-bounds"),
        (r":s4790$|:s4426$", "weak-crypto"),
    ),
)

CODECLIMATE_TABLES = AdapterTables(
    severity_map={
        "blocker": Severity.CRITICAL,
        "critical": Severity.HIGH,
        "major": Severity.MEDIUM,
        "minor": Severity.LOW,
        "info": Severity.INFO,
    },
    default_analysis_type=AnalysisType.QUALITY,
    category_map={
        "security": AnalysisType.SECURITY,
        "bug risk": AnalysisType.CORRECTNESS,
        "complexity": AnalysisType.ARCHITECTURE_DEBT,
        "duplication": AnalysisType.ARCHITECTURE_DEBT,
        "performance": AnalysisType.PERFORMANCE,
        "clarity": AnalysisType.QUALITY,
        "compatibility": AnalysisType.QUALITY,
        "style": AnalysisType.QUALITY,
        "grade": AnalysisType.ARCHITECTURE_DEBT,
    },
    uses_grades=True,
)
