"""
Rule tests — each rule checked in isolation, plus the catalog and the
naming suggestion helpers.
"""

import unittest
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from barrc.checker import StyleChecker
from barrc.policy import StylePolicy
from barrc.rules import (
    RULE_CONST_POINTERS, RULE_CONSTANT_NAMING, RULE_FUNCTION_NAMING,
    RULE_PRIMITIVE_TYPES, RULE_VARIABLE_NAMING, Severity,
    classify_primitive, format_rule_explanation, get_all_rules, get_rule,
    stdint_replacement, suggest_constant_name, suggest_function_name,
    suggest_variable_name,
)


def run_rule(code, source):
    checker = StyleChecker(StylePolicy(enabled_rules=[code]))
    return checker.check_source(source, "rule.c")


class TestFunctionNaming(unittest.TestCase):

    def test_module_action_names_pass(self):
        for name in ("LED_Init", "LED_SetBrightness", "UART_SendByte", "Adc2_Read", "Motor_Pwm_Set"):
            self.assertEqual(run_rule(RULE_FUNCTION_NAMING, f"void {name}(void) {{ }}"), [], name)

    def test_non_module_names_fail_once_at_name(self):
        for name in ("initLED", "doThing", "led_init", "LED_init", "Init", "LED__Init"):
            violations = run_rule(RULE_FUNCTION_NAMING, f"void {name}(void) {{ }}")
            self.assertEqual(len(violations), 1, name)
            v = violations[0]
            self.assertEqual((v.line, v.column, v.symbol), (1, 6, name))
            self.assertIn(name, v.message)
            self.assertIn("Module_Function", v.message)
            self.assertEqual(v.severity, Severity.ERROR)

    def test_main_is_exempt(self):
        self.assertEqual(run_rule(RULE_FUNCTION_NAMING, "int main(void) { return 0; }"), [])

    def test_prototypes_are_checked(self):
        violations = run_rule(RULE_FUNCTION_NAMING, "void initLED(void);")
        self.assertEqual([v.symbol for v in violations], ["initLED"])

    def test_custom_pattern(self):
        checker = StyleChecker(StylePolicy(
            enabled_rules=[RULE_FUNCTION_NAMING],
            function_pattern=r"[a-z]+_[a-z_]+",
        ))
        self.assertEqual(checker.check_source("void led_init(void) { }"), [])
        self.assertEqual(len(checker.check_source("void LED_Init(void) { }")), 1)


class TestVariableNaming(unittest.TestCase):

    def test_uppercase_letters_fire_once_per_declaration(self):
        source = "void LED_Init(uint8_t pinMask) {\n    uint8_t ledPin = 13, ok_name = 1;\n}"
        violations = run_rule(RULE_VARIABLE_NAMING, source)
        self.assertEqual([v.symbol for v in violations], ["pinMask", "ledPin"])
        self.assertIn("Parameter 'pinMask'", violations[0].message)
        self.assertIn("snake_case", violations[1].message)
        self.assertEqual(violations[1].suggestion, "led_pin")

    def test_snake_case_passes(self):
        source = "uint8_t led_pin;\nvoid LED_Init(uint8_t pin_2) { uint16_t max_value = 0; }"
        self.assertEqual(run_rule(RULE_VARIABLE_NAMING, source), [])

    def test_global_constants_left_to_constant_rule(self):
        self.assertEqual(run_rule(RULE_VARIABLE_NAMING, "const uint8_t MAX_LEVEL = 3;"), [])


class TestConstantNaming(unittest.TestCase):

    def test_global_const_must_be_upper_snake(self):
        violations = run_rule(RULE_CONSTANT_NAMING, "const uint16_t maxSize = 100;")
        self.assertEqual(len(violations), 1)
        self.assertEqual(violations[0].suggestion, "MAX_SIZE")

    def test_local_const_is_not_a_global_constant(self):
        source = "void LED_Init(void) { const uint8_t max_brightness = 255; }"
        self.assertEqual(run_rule(RULE_CONSTANT_NAMING, source), [])

    def test_upper_snake_passes(self):
        self.assertEqual(run_rule(RULE_CONSTANT_NAMING, "const uint16_t MAX_BUFFER_SIZE = 256;"), [])


class TestPrimitiveTypes(unittest.TestCase):

    def test_unsigned_char_fires(self):
        violations = run_rule(RULE_PRIMITIVE_TYPES, "unsigned char brightness = 255;")
        self.assertEqual(len(violations), 1)
        v = violations[0]
        self.assertEqual(v.symbol, "brightness")
        self.assertIn("unsigned char", v.message)
        self.assertIn("uint8_t", v.message)
        self.assertEqual(v.suggestion, "Replace 'unsigned char brightness' with 'uint8_t brightness'")

    def test_fixed_width_passes(self):
        self.assertEqual(run_rule(RULE_PRIMITIVE_TYPES, "uint8_t led_pin = 13;"), [])

    def test_banned_primitives(self):
        source = """
int a;
short b;
long c;
signed char d;
unsigned e;
unsigned long int f;
long long g;
void F_H(unsigned short h) { }
"""
        symbols = [v.symbol for v in run_rule(RULE_PRIMITIVE_TYPES, source)]
        self.assertEqual(symbols, ["a", "b", "c", "d", "e", "f", "g", "h"])

    def test_plain_char_only_for_numeric_storage(self):
        source = """
char letter = 'x';
char *text = "hello";
char buffer[16];
char counter = 10;
"""
        symbols = [v.symbol for v in run_rule(RULE_PRIMITIVE_TYPES, source)]
        self.assertEqual(symbols, ["counter"])

    def test_non_integer_types_pass(self):
        self.assertEqual(run_rule(RULE_PRIMITIVE_TYPES, "float ratio; double gain; bool ready;"), [])

    def test_classification(self):
        self.assertEqual(classify_primitive("unsigned long int"), ("unsigned", "long"))
        self.assertEqual(classify_primitive("long long"), ("", "long long"))
        self.assertIsNone(classify_primitive("uint8_t"))
        self.assertEqual(stdint_replacement("short"), "int16_t")
        self.assertIn("depends on platform", stdint_replacement("int"))


class TestConstPointers(unittest.TestCase):

    def test_non_const_pointer_parameter_fires(self):
        violations = run_rule(RULE_CONST_POINTERS, "void processData(uint8_t* data) {\n}")
        self.assertEqual(len(violations), 1)
        v = violations[0]
        self.assertEqual((v.symbol, v.line, v.column), ("data", 1, 27))
        self.assertIn("processData", v.message)
        self.assertEqual(v.severity, Severity.WARNING)

    def test_const_pointer_parameter_passes(self):
        source = "void LED_SetBrightness(const uint8_t* brightness_ptr) {\n}"
        self.assertEqual(run_rule(RULE_CONST_POINTERS, source), [])

    def test_non_pointer_parameters_and_variables_ignored(self):
        source = "uint8_t *global_ptr;\nvoid F_G(uint8_t value) { uint8_t *local = 0; }"
        self.assertEqual(run_rule(RULE_CONST_POINTERS, source), [])

    def test_conservative_without_write_analysis(self):
        source = "void Buf_Clear(uint8_t *buf) { *buf = 0; }"
        self.assertEqual(len(run_rule(RULE_CONST_POINTERS, source)), 1)

    def test_write_analysis_suppresses_written_pointers(self):
        checker = StyleChecker(StylePolicy(enabled_rules=[RULE_CONST_POINTERS], analyze_writes=True))
        source = """
void Buf_Clear(uint8_t *buf) { *buf = 0; }
void Buf_Read(uint8_t *src, uint8_t *dst) { uint8_t v = *src; dst[0] = v; }
void Buf_Proto(uint8_t *p);
"""
        symbols = [v.symbol for v in checker.check_source(source)]
        self.assertEqual(symbols, ["src", "p"])

    def test_prototype_follows_its_written_definition(self):
        checker = StyleChecker(StylePolicy(enabled_rules=[RULE_CONST_POINTERS], analyze_writes=True))
        source = (
            "void Buf_Fill(uint8_t *buf);\n"
            "void Buf_Copy(uint8_t *out, uint8_t *in);\n"
            "void Buf_Fill(uint8_t *buf) { buf[0] = 1U; }\n"
            "void Buf_Copy(uint8_t *dst, uint8_t *src) { *dst = *src; }\n"
        )
        violations = checker.check_source(source)
        self.assertEqual([(v.symbol, v.line) for v in violations], [("in", 2)])

    def test_array_with_size_macro_written(self):
        checker = StyleChecker(StylePolicy(enabled_rules=[RULE_CONST_POINTERS], analyze_writes=True))
        source = "void Buf_Fill(uint8_t buf[BUF_LEN]) { buf[0] = 1U; }"
        self.assertEqual(checker.check_source(source), [])

    def test_function_pointer_parameter_not_flagged(self):
        source = "void Timer_Start(void (*callback)(void)) { callback(); }"
        self.assertEqual(run_rule(RULE_CONST_POINTERS, source), [])

    def test_prototype_and_definition_reported_once(self):
        source = (
            "void processData(uint8_t *data);\n"
            "void processData(uint8_t *data) {\n"
            "}\n"
        )
        violations = StyleChecker().check_source(source)
        self.assertEqual(
            [(v.rule_code, v.symbol, v.line) for v in violations],
            [(RULE_FUNCTION_NAMING, "processData", 1), (RULE_CONST_POINTERS, "data", 1)],
        )


class TestCatalog(unittest.TestCase):

    def test_catalog_order_and_fields(self):
        rules = get_all_rules()
        self.assertEqual(list(rules), [
            RULE_FUNCTION_NAMING, RULE_VARIABLE_NAMING, RULE_CONSTANT_NAMING,
            RULE_PRIMITIVE_TYPES, RULE_CONST_POINTERS,
        ])
        for code, rule in rules.items():
            for field_name in ("title", "category", "rationale", "non_compliant",
                               "compliant", "fix_strategy"):
                self.assertTrue(getattr(rule, field_name), f"{code}.{field_name} is empty")

    def test_explanation(self):
        text = format_rule_explanation(RULE_CONST_POINTERS)
        self.assertIn("Const Pointer Correctness", text)
        self.assertIn("const uint8_t* data", text)
        self.assertEqual(format_rule_explanation("NOPE"), "Unknown rule: NOPE")
        self.assertIsNone(get_rule("NOPE"))

    def test_no_declarations_no_violations(self):
        self.assertEqual(StyleChecker().evaluate([]), [])
        self.assertEqual(StyleChecker().check_source(""), [])


class TestSuggestions(unittest.TestCase):

    def test_function_names(self):
        self.assertEqual(suggest_function_name("initLED"), "Module_InitLED")
        self.assertEqual(suggest_function_name("led_init"), "Led_Init")
        self.assertEqual(suggest_function_name("LED_init"), "LED_Init")

    def test_variable_names(self):
        self.assertEqual(suggest_variable_name("ledPin"), "led_pin")
        self.assertEqual(suggest_variable_name("LEDState"), "led_state")
        self.assertEqual(suggest_variable_name("rxBuffer2Len"), "rx_buffer2_len")

    def test_constant_names(self):
        self.assertEqual(suggest_constant_name("maxSize"), "MAX_SIZE")


if __name__ == "__main__":
    unittest.main()
