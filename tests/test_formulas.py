"""Tests for report formula text."""

from hours_tool.excel import formulas


class TestRowFormulas:
    def test_row_amount(self):
        assert formulas.row_amount(5) == '=IF(OR(C5="",D5=""),"",C5*D5)'

    def test_worker_total_hours(self):
        assert formulas.worker_total_hours(5, 6) == "=SUM(C5:C6)"

    def test_worker_weighted_rate(self):
        assert formulas.worker_weighted_rate(5, 6) == (
            '=IF(SUMIFS(C5:C6,D5:D6,"<>")=0,"",'
            'ROUND(SUMIFS(E5:E6,D5:D6,"<>")/SUMIFS(C5:C6,D5:D6,"<>"),2))'
        )

    def test_worker_total_amount(self):
        assert formulas.worker_total_amount(5, 6) == (
            '=IF(SUMIFS(E5:E6,D5:D6,"<>")=0,"",SUMIFS(E5:E6,D5:D6,"<>"))'
        )


class TestCompanyFormulas:
    def test_company_amount_matches_table_slot(self):
        assert formulas.company_amount(3, 5, 12) == (
            '=IF(SUMIFS($E$5:$E$12,$F$5:$F$12,3,$D$5:$D$12,"<>")=0,"",'
            'SUMIFS($E$5:$E$12,$F$5:$F$12,3,$D$5:$D$12,"<>"))'
        )

    def test_grand_total_counts_only_keyed_rows(self):
        assert formulas.grand_total_amount(5, 12) == (
            '=IF(SUMIFS($E$5:$E$12,$F$5:$F$12,"<>",$D$5:$D$12,"<>")=0,"",'
            'SUMIFS($E$5:$E$12,$F$5:$F$12,"<>",$D$5:$D$12,"<>"))'
        )

    def test_column_sum(self):
        assert formulas.column_sum("E", 5, 11) == "=SUM(E5:E11)"
