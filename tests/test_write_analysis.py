import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from barrc.write_analysis import PointerWriteAnalyzer


class TestPointerWriteAnalyzer(unittest.TestCase):

    def setUp(self):
        self.analyzer = PointerWriteAnalyzer()

    def test_direct_writes(self):
        source = """
void Buf_Deref(uint8_t *p) { *p = 1; }
void Buf_Index(uint8_t *p, uint8_t i) { p[i] = 0; }
void Buf_Field(struct cfg *p) { p->mode = 2; }
void Buf_Compound(uint8_t *p) { *p += 3; }
"""
        result = self.analyzer.analyze(source)
        for fn in ("Buf_Deref", "Buf_Index", "Buf_Field", "Buf_Compound"):
            self.assertEqual(result[fn], {"p"}, fn)

    def test_updates_through_pointer(self):
        source = """
void Cnt_Inc(uint8_t *p) { (*p)++; }
void Cnt_Dec(uint8_t *p) { p[0]--; }
void Cnt_Copy(uint8_t *dst, const uint8_t *src) { *dst++ = *src; }
"""
        result = self.analyzer.analyze(source)
        self.assertEqual(result["Cnt_Inc"], {"p"})
        self.assertEqual(result["Cnt_Dec"], {"p"})
        self.assertEqual(result["Cnt_Copy"], {"dst"})

    def test_reads_are_not_writes(self):
        source = """
uint8_t Buf_Peek(uint8_t *p, uint8_t *q) {
    uint8_t v = *p;
    printf("%u", q[1]);
    return v + p[2] + q->len;
}
"""
        self.assertEqual(self.analyzer.analyze(source)["Buf_Peek"], set())

    def test_array_parameter(self):
        result = self.analyzer.analyze("void Buf_Fill(uint8_t buf[]) { buf[0] = 1; }")
        self.assertEqual(result["Buf_Fill"], {"buf"})

    def test_parameter_name_not_taken_from_array_size(self):
        result = self.analyzer.analyze("void Buf_Fill(uint8_t buf[BUF_LEN]) { buf[0] = 1U; }")
        self.assertEqual(result["Buf_Fill"], {"buf"})

    def test_function_pointer_parameter_names(self):
        source = """
void Cb_Run(uint8_t *out, void (*cb)(uint8_t *x)) {
    *out = 0;
    cb(out);
}
"""
        analyzer = self.analyzer
        fn_node = next(analyzer._walk_type(
            analyzer._parser.parse(source.encode("utf-8")).root_node, "function_definition"))
        self.assertEqual(analyzer._pointer_params(fn_node, source.encode("utf-8")), {"out", "cb"})
        self.assertEqual(analyzer.analyze(source)["Cb_Run"], {"out"})

    def test_library_calls(self):
        source = """
void Str_Copy(char *dst, char *src, size_t n) {
    memcpy(dst, src, n);
    (void)strlen(src);
}
"""
        self.assertEqual(self.analyzer.analyze(source)["Str_Copy"], {"dst"})

    def test_call_to_const_parameter_is_read(self):
        source = """
uint8_t Sum_Get(const uint8_t *values) { return values[0]; }
void Sum_Use(uint8_t *q) { Sum_Get(q); }
"""
        self.assertEqual(self.analyzer.analyze(source)["Sum_Use"], set())

    def test_call_to_unknown_or_nonconst_callee_is_write(self):
        source = """
void Dev_Fill(uint8_t *buf) { buf[0] = 0; }
void Dev_Run(uint8_t *a, uint8_t *b) {
    Dev_Fill(a);
    Ext_Unknown(b);
}
"""
        self.assertEqual(self.analyzer.analyze(source)["Dev_Run"], {"a", "b"})

    def test_non_pointer_parameters_ignored(self):
        source = "void Val_Set(uint8_t value) { value = 3; }"
        self.assertEqual(self.analyzer.analyze(source), {"Val_Set": set()})

    def test_prototypes_not_analysed(self):
        self.assertEqual(self.analyzer.analyze("void Buf_Clear(uint8_t *p);"), {})


if __name__ == "__main__":
    unittest.main()
