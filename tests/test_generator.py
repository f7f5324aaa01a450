"""
Integration tests for CSharpBindingsGenerator: whole documents compared byte for byte
"""

import textwrap

import pytest

from rust_cs_bindgen.config import BindingConfig
from rust_cs_bindgen.errors import (
    CompilationError,
    UnresolvedTypeError,
    UnsupportedCallbackShapeError,
    UnsupportedTypeError,
)
from rust_cs_bindgen.generator import CSharpBindingsGenerator

from conftest import compile_rust, dedent


FUNCTIONS_HEADER = dedent("""
    using System;
    using System.Runtime.InteropServices;
    using System.Threading.Tasks;

    namespace Backend {
        public partial class Backend : IBackend {
            #if __IOS__
            internal const String DLL_NAME = "__Internal";
            #else
            internal const String DLL_NAME = "backend";
            #endif

""")

FUNCTIONS_FOOTER = "    }\n}\n"


def functions_document(body: str) -> str:
    return FUNCTIONS_HEADER + textwrap.indent(dedent(body), " " * 8) + FUNCTIONS_FOOTER


class TestTypes:
    """Types.cs generation"""

    def test_non_repr_c_types_are_ignored(self):
        """Structs and enums without #[repr] have no stable layout and are skipped"""
        outputs = compile_rust("""
            pub struct Foo {
                bar: i32,
            }

            pub enum Meta {
                Foo,
                Bar,
                Baz,
            }
        """)

        assert outputs["Types.cs"] == ""

    def test_tuple_and_unit_structs_are_ignored(self):
        outputs = compile_rust("""
            #[repr(C)]
            pub struct Wrapper(u32);

            #[repr(C)]
            pub struct Marker;
        """)

        assert outputs["Types.cs"] == ""

    def test_structs(self):
        outputs = compile_rust("""
            #[repr(C)]
            pub struct Record {
                id: u64,
                enabled: bool,
                name: *const c_char,
                random_numbers: [i32; 10],
                widget: Widget,
                gadgets: [Gadget; 100],
            }
        """)

        expected = dedent("""
            using System;
            using System.Runtime.InteropServices;

            namespace Backend {
                public struct Record {
                    public ulong Id;
                    [MarshalAs(UnmanagedType.U1)]
                    public bool Enabled;
                    [MarshalAs(UnmanagedType.LPStr)]
                    public String Name;
                    [MarshalAs(UnmanagedType.ByValArray, SizeConst = 10)]
                    public int[] RandomNumbers;
                    public Widget Widget;
                    [MarshalAs(UnmanagedType.ByValArray, SizeConst = 100)]
                    public Gadget[] Gadgets;
                }

            }
        """)
        assert outputs["Types.cs"] == expected

    def test_structs_with_dynamic_array_field(self):
        """A struct holding a _ptr/_len pair is emitted as <Name>Native"""
        outputs = compile_rust("""
            #[repr(C)]
            pub struct Entry {
                key_ptr: *const u8,
                key_len: usize,
                records_ptr: *const Record,
                records_len: usize,
            }

            #[no_mangle]
            pub extern "C" fn fun(entry: Entry) {}
        """)

        expected_types = dedent("""
            using System;
            using System.Runtime.InteropServices;

            namespace Backend {
                public struct EntryNative {
                    public IntPtr KeyPtr;
                    public ulong KeyLen;
                    public IntPtr RecordsPtr;
                    public ulong RecordsLen;
                }

            }
        """)
        assert outputs["Types.cs"] == expected_types

        expected_functions = functions_document("""
                    public void Fun(EntryNative entry) {
                        FunNative(entry);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun")]
                    internal static extern void FunNative(EntryNative entry);

        """)
        assert outputs["Backend.cs"] == expected_functions

    def test_dynamic_struct_used_before_declaration(self):
        """Type knowledge does not depend on declaration order"""
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun(entry: Entry) {}

            #[repr(C)]
            pub struct Entry {
                key_ptr: *const u8,
                key_len: usize,
            }
        """)

        assert "internal static extern void FunNative(EntryNative entry);" in outputs["Backend.cs"]
        assert "public struct EntryNative {" in outputs["Types.cs"]

    def test_type_aliases(self):
        outputs = compile_rust("""
            pub type Id = u64;
            // Double indirection.
            pub type UserId = Id;

            #[repr(C)]
            pub struct Message {
                id: Id,
                sender_id: UserId,
                receiver_ids: [Id; 10],
            }

            #[no_mangle]
            pub extern "C" fn fun(
                id: Id,
                user_data: *mut c_void,
                cb: extern "C" fn(*mut c_void, *const FfiResult, Id),
            ) {
            }
        """)

        expected_types = dedent("""
            using System;
            using System.Runtime.InteropServices;

            namespace Backend {
                public struct Message {
                    public ulong Id;
                    public ulong SenderId;
                    [MarshalAs(UnmanagedType.ByValArray, SizeConst = 10)]
                    public ulong[] ReceiverIds;
                }

            }
        """)
        assert outputs["Types.cs"] == expected_types

        expected_functions = functions_document("""
                    public Task<ulong> Fun(ulong id) {
                        var (task, userData) = Utils.PrepareTask<ulong>();
                        FunNative(id, userData, OnFfiResultULongCb);
                        return task;
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun")]
                    internal static extern void FunNative(ulong id, IntPtr userData, FfiResultULongCb cb);

                    #region Callbacks
                    internal delegate void FfiResultULongCb(IntPtr arg0, ref FfiResult arg1, ulong arg2);

                    #if __IOS__
                    [MonoPInvokeCallback(typeof(FfiResultULongCb))]
                    #endif
                    private static void OnFfiResultULongCb(IntPtr arg0, ref FfiResult arg1, ulong arg2) {
                        Utils.CompleteTask(arg0, ref arg1, arg2);
                    }

                    #endregion

        """)
        assert outputs["Backend.cs"] == expected_functions

    def test_enums(self):
        outputs = compile_rust("""
            #[repr(C)]
            pub enum Mode {
                ReadOnly,
                WriteOnly,
                ReadAndWrite,
            }

            #[repr(C)]
            pub enum Binary {
                Zero = 0,
                One = 1,
            }
        """)

        expected = dedent("""
            using System;
            using System.Runtime.InteropServices;

            namespace Backend {
                public enum Mode {
                    ReadOnly,
                    WriteOnly,
                    ReadAndWrite,
                }

                public enum Binary {
                    Zero = 0,
                    One = 1,
                }

            }
        """)
        assert outputs["Types.cs"] == expected

    def test_enums_without_variants_are_ignored(self):
        outputs = compile_rust("""
            #[repr(u8)]
            pub enum Never {}

            #[repr(C)]
            pub enum Mode { ReadOnly }
        """)

        assert "Never" not in outputs["Types.cs"]
        assert "    public enum Mode {\n        ReadOnly,\n    }\n" in outputs["Types.cs"]

    def test_enum_with_integer_repr(self):
        """repr(u8) becomes the C# underlying type"""
        outputs = compile_rust("""
            #[repr(u8)]
            pub enum Level {
                Low = 0x01,
                High = 1 << 4,
            }
        """)

        types = outputs["Types.cs"]
        assert "    public enum Level : byte {\n" in types
        assert "        Low = 0x01,\n" in types
        assert "        High = 1 << 4,\n" in types

    def test_opaque_types(self):
        config = BindingConfig()
        config.add_opaque_type("Handle")

        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun0(handle: *const Handle) {}
        """, config)

        expected_types = dedent("""
            using System;
            using System.Runtime.InteropServices;

            namespace Backend {
                #pragma warning disable CS0169
                public struct Handle {
                    private IntPtr _value;
                }

                #pragma warning restore CS0169
            }
        """)
        assert outputs["Types.cs"] == expected_types

        expected_functions = functions_document("""
                    public void Fun0(Handle handle) {
                        Fun0Native(handle);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun0")]
                    internal static extern void Fun0Native(Handle handle);

        """)
        assert outputs["Backend.cs"] == expected_functions


class TestFunctions:
    """<Class>.cs and <Interface>.cs generation"""

    def test_functions_without_extern_and_no_mangle_are_ignored(self):
        outputs = compile_rust("""
            pub extern "C" fn fun1() {}

            #[no_mangle]
            pub fn fun2() {}
        """)

        assert outputs["Backend.cs"] == ""

    def test_unsafe_no_mangle_attribute(self):
        """The 2024 edition spelling #[unsafe(no_mangle)] also exports"""
        outputs = compile_rust("""
            #[unsafe(no_mangle)]
            pub unsafe extern "C" fn reset() {}
        """)

        assert 'EntryPoint = "reset"' in outputs["Backend.cs"]

    def test_functions_taking_no_callbacks(self):
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun0(engine: *mut Engine) {}
        """)

        expected = functions_document("""
                    public void Fun0(ref Engine engine) {
                        Fun0Native(ref engine);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun0")]
                    internal static extern void Fun0Native(ref Engine engine);

        """)
        assert outputs["Backend.cs"] == expected

    def test_functions_taking_one_callback(self):
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun1(
                num: i32,
                name: *const c_char,
                user_data: *mut c_void,
                cb: extern "C" fn(user_data: *mut c_void, result: *const FfiResult),
            ) {
            }
        """)

        expected = functions_document("""
                    public Task Fun1(int num, String name) {
                        var (task, userData) = Utils.PrepareTask();
                        Fun1Native(num, name, userData, OnFfiResultCb);
                        return task;
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun1")]
                    internal static extern void Fun1Native(int num, [MarshalAs(UnmanagedType.LPStr)] String name, IntPtr userData, FfiResultCb cb);

                    #region Callbacks
                    internal delegate void FfiResultCb(IntPtr userData, ref FfiResult result);

                    #if __IOS__
                    [MonoPInvokeCallback(typeof(FfiResultCb))]
                    #endif
                    private static void OnFfiResultCb(IntPtr userData, ref FfiResult result) {
                        Utils.CompleteTask(userData, ref result);
                    }

                    #endregion

        """)
        assert outputs["Backend.cs"] == expected

    def test_functions_taking_multiple_callbacks(self):
        """Only the native declaration and the delegates are produced"""
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun(
                input: i32,
                user_data: *mut c_void,
                cb0: extern "C" fn(user_data: *mut c_void),
                cb1: extern "C" fn(user_data: *mut c_void,
                                   result: *const FfiResult,
                                   output: i32),
            ) {
            }
        """)

        expected = functions_document("""
                    [DllImport(DLL_NAME, EntryPoint = "fun")]
                    internal static extern void FunNative(int input, IntPtr userData, NoneCb cb0, FfiResultIntCb cb1);

                    #region Callbacks
                    internal delegate void FfiResultIntCb(IntPtr userData, ref FfiResult result, int output);

                    internal delegate void NoneCb(IntPtr userData);

                    #endregion

        """)
        assert outputs["Backend.cs"] == expected
        assert outputs["IBackend.cs"] == ""

    def test_functions_taking_array(self):
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun0(data_ptr: *const u8, data_len: usize) {}

            // Params before and/or after the array
            #[no_mangle]
            pub extern "C" fn fun1(id: u64, data_ptr: *const u8, data_len: usize) {}

            // Does not follow the naming convention, so it stays a pointer
            #[no_mangle]
            pub extern "C" fn fun2(result: *const FfiResult, len: usize) {}
        """)

        expected = functions_document("""
                    public void Fun0(byte[] data) {
                        Fun0Native(data, (ulong) data.Length);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun0")]
                    internal static extern void Fun0Native([MarshalAs(UnmanagedType.LPArray, SizeParamIndex = 1)] byte[] data, ulong dataLen);

                    public void Fun1(ulong id, byte[] data) {
                        Fun1Native(id, data, (ulong) data.Length);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun1")]
                    internal static extern void Fun1Native(ulong id, [MarshalAs(UnmanagedType.LPArray, SizeParamIndex = 2)] byte[] data, ulong dataLen);

                    public void Fun2(ref FfiResult result, ulong len) {
                        Fun2Native(ref result, len);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun2")]
                    internal static extern void Fun2Native(ref FfiResult result, ulong len);

        """)
        assert outputs["Backend.cs"] == expected

    def test_functions_taking_callback_taking_const_size_array(self):
        outputs = compile_rust("""
            // Literal.
            #[no_mangle]
            pub extern "C" fn fun2(
                user_data: *mut c_void,
                cb: extern "C" fn(user_data: *mut c_void,
                                  result: *const FfiResult,
                                  key: [u8; 32]),
            ) {
            }

            // Named constant.
            #[no_mangle]
            pub extern "C" fn fun3(
                user_data: *mut c_void,
                cb: extern "C" fn(user_data: *mut c_void,
                                  result: *const FfiResult,
                                  nonce: [u8; NONCE_LEN]),
            ) {
            }
        """)

        expected = functions_document("""
                    public Task<byte[]> Fun2() {
                        var (task, userData) = Utils.PrepareTask<byte[]>();
                        Fun2Native(userData, OnFfiResultByteArray32Cb);
                        return task;
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun2")]
                    internal static extern void Fun2Native(IntPtr userData, FfiResultByteArray32Cb cb);

                    public Task<byte[]> Fun3() {
                        var (task, userData) = Utils.PrepareTask<byte[]>();
                        Fun3Native(userData, OnFfiResultByteArrayNonceLenCb);
                        return task;
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun3")]
                    internal static extern void Fun3Native(IntPtr userData, FfiResultByteArrayNonceLenCb cb);

                    #region Callbacks
                    internal delegate void FfiResultByteArray32Cb(IntPtr userData, ref FfiResult result, IntPtr keyPtr);

                    #if __IOS__
                    [MonoPInvokeCallback(typeof(FfiResultByteArray32Cb))]
                    #endif
                    private static void OnFfiResultByteArray32Cb(IntPtr userData, ref FfiResult result, IntPtr keyPtr) {
                        Utils.CompleteTask(userData, ref result, Utils.CopyToByteArray(keyPtr, 32));
                    }

                    internal delegate void FfiResultByteArrayNonceLenCb(IntPtr userData, ref FfiResult result, IntPtr noncePtr);

                    #if __IOS__
                    [MonoPInvokeCallback(typeof(FfiResultByteArrayNonceLenCb))]
                    #endif
                    private static void OnFfiResultByteArrayNonceLenCb(IntPtr userData, ref FfiResult result, IntPtr noncePtr) {
                        Utils.CompleteTask(userData, ref result, Utils.CopyToByteArray(noncePtr, Constants.NONCE_LEN));
                    }

                    #endregion

        """)
        assert outputs["Backend.cs"] == expected

    def test_functions_taking_callback_taking_dynamic_array(self):
        outputs = compile_rust("""
            // Primitive type.
            #[no_mangle]
            pub extern "C" fn fun0(
                user_data: *mut c_void,
                cb: extern "C" fn(user_data: *mut c_void,
                                  result: *const FfiResult,
                                  data_ptr: *const u8,
                                  data_len: usize),
            ) {
            }

            // Structures.
            #[no_mangle]
            pub extern "C" fn fun1(
                user_data: *mut c_void,
                cb: extern "C" fn(user_data: *mut c_void,
                                  result: *const FfiResult,
                                  records_ptr: *const Record,
                                  records_len: usize),
            ) {
            }
        """)

        expected = functions_document("""
                    public Task<byte[]> Fun0() {
                        var (task, userData) = Utils.PrepareTask<byte[]>();
                        Fun0Native(userData, OnFfiResultByteListCb);
                        return task;
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun0")]
                    internal static extern void Fun0Native(IntPtr userData, FfiResultByteListCb cb);

                    public Task<Record[]> Fun1() {
                        var (task, userData) = Utils.PrepareTask<Record[]>();
                        Fun1Native(userData, OnFfiResultRecordListCb);
                        return task;
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun1")]
                    internal static extern void Fun1Native(IntPtr userData, FfiResultRecordListCb cb);

                    #region Callbacks
                    internal delegate void FfiResultByteListCb(IntPtr userData, ref FfiResult result, IntPtr dataPtr, ulong dataLen);

                    #if __IOS__
                    [MonoPInvokeCallback(typeof(FfiResultByteListCb))]
                    #endif
                    private static void OnFfiResultByteListCb(IntPtr userData, ref FfiResult result, IntPtr dataPtr, ulong dataLen) {
                        Utils.CompleteTask(userData, ref result, Utils.CopyToByteArray(dataPtr, dataLen));
                    }

                    internal delegate void FfiResultRecordListCb(IntPtr userData, ref FfiResult result, IntPtr recordsPtr, ulong recordsLen);

                    #if __IOS__
                    [MonoPInvokeCallback(typeof(FfiResultRecordListCb))]
                    #endif
                    private static void OnFfiResultRecordListCb(IntPtr userData, ref FfiResult result, IntPtr recordsPtr, ulong recordsLen) {
                        Utils.CompleteTask(userData, ref result, Utils.CopyToObjectArray<Record>(recordsPtr, recordsLen));
                    }

                    #endregion

        """)
        assert outputs["Backend.cs"] == expected

    def test_shared_callback_emitted_once(self):
        """Two functions using the same callback shape share one delegate"""
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn a(user_data: *mut c_void,
                                cb: extern "C" fn(user_data: *mut c_void, result: *const FfiResult)) {}

            #[no_mangle]
            pub extern "C" fn b(user_data: *mut c_void,
                                cb: extern "C" fn(user_data: *mut c_void, result: *const FfiResult)) {}
        """)

        functions = outputs["Backend.cs"]
        assert functions.count("internal delegate void FfiResultCb(") == 1
        assert functions.count("private static void OnFfiResultCb(") == 1

    def test_callback_name_clash_is_an_error(self):
        """A delegate name reused for a different signature fails the later function"""
        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                #[repr(C)]
                pub struct Record { id: u32 }

                #[no_mangle]
                pub extern "C" fn by_ref(user_data: *mut c_void,
                                         cb: extern "C" fn(user_data: *mut c_void,
                                                           result: *const FfiResult,
                                                           record: *const Record)) {}

                #[no_mangle]
                pub extern "C" fn by_value(user_data: *mut c_void,
                                           cb: extern "C" fn(user_data: *mut c_void,
                                                             result: *const FfiResult,
                                                             record: Record)) {}
            """)

        error = exc_info.value
        assert [e.declaration for e in error.errors] == ["by_value"]
        assert isinstance(error.errors[0], UnsupportedCallbackShapeError)
        assert "FfiResultRecordCb" in str(error.errors[0])

        functions = error.outputs["Backend.cs"]
        assert functions.count("internal delegate void FfiResultRecordCb(") == 1
        assert "ByValue" not in functions

    def test_callback_delivering_several_values(self):
        """Several delivered values complete a tuple task"""
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn stats(
                user_data: *mut c_void,
                cb: extern "C" fn(user_data: *mut c_void,
                                  result: *const FfiResult,
                                  count: i32,
                                  total: u64),
            ) {
            }
        """)

        functions = outputs["Backend.cs"]
        assert "public Task<(int, ulong)> Stats() {" in functions
        assert "Utils.PrepareTask<(int, ulong)>();" in functions
        assert "Utils.CompleteTask(userData, ref result, (count, total));" in functions
        assert "internal delegate void FfiResultIntULongCb(" in functions

    def test_functions_with_return_values(self):
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun(arg: i32) -> bool {}
        """)

        expected = functions_document("""
                    public bool Fun(int arg) {
                        return FunNative(arg);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun")]
                    internal static extern bool FunNative(int arg);

        """)
        assert outputs["Backend.cs"] == expected

    def test_string_return_is_a_pointer(self):
        """A returned C string belongs to the native side"""
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn version() -> *const c_char { VERSION.as_ptr() }
        """)

        assert "internal static extern IntPtr VersionNative();" in outputs["Backend.cs"]

    def test_functions_taking_out_param(self):
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun(o_app: *mut *mut App) {}
        """)

        expected = functions_document("""
                    public void Fun(out IntPtr oApp) {
                        FunNative(out oApp);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun")]
                    internal static extern void FunNative(out IntPtr oApp);

        """)
        assert outputs["Backend.cs"] == expected

    def test_arrays(self):
        outputs = compile_rust("""
            pub const ARRAY_SIZE: usize = 20;

            #[no_mangle]
            pub extern "C" fn fun(a: [u8; 10], b: [u8; ARRAY_SIZE]) {}
        """)

        expected = functions_document("""
                    public void Fun(byte[] a, byte[] b) {
                        FunNative(a, b);
                    }

                    [DllImport(DLL_NAME, EntryPoint = "fun")]
                    internal static extern void FunNative([MarshalAs(UnmanagedType.ByValArray, SizeConst = 10)] byte[] a, [MarshalAs(UnmanagedType.ByValArray, SizeConst = (int) Constants.ARRAY_SIZE)] byte[] b);

        """)
        assert outputs["Backend.cs"] == expected

    def test_interface(self):
        outputs = compile_rust("""
            #[no_mangle]
            pub extern "C" fn fun(
                enabled: bool,
                user_data: *mut c_void,
                cb: extern "C" fn(user_data: *mut c_void, result: *const FfiResult),
            ) {
            }
        """)

        expected = dedent("""
            using System;
            using System.Runtime.InteropServices;
            using System.Threading.Tasks;

            namespace Backend {
                public partial interface IBackend {
                    Task Fun(bool enabled);
                }
            }
        """)
        assert outputs["IBackend.cs"] == expected
        assert "[MarshalAs(UnmanagedType.U1)] bool enabled" in outputs["Backend.cs"]


class TestConstants:
    """<Constants>.cs generation"""

    def test_constants(self):
        config = BindingConfig()
        config.add_const("byte", "CUSTOM", 45)

        outputs = compile_rust("""
            pub const NUMBER: i32 = 123;
            pub const STRING: &'static str = "hello world";
            pub const ARRAY: [u8; 4] = [0, 1, 2, 3];

            pub const STRUCT_VALUE: Record = Record {
                id: 0,
                secret_code: "xyz",
            };

            pub const STRUCT_REF: &'static Record = &Record {
                id: 1,
                secret_code: "xyz",
            };

            pub const EMPTY_STR: *const c_char = 0 as *const c_char;
        """, config)

        expected = dedent("""
            using System;

            namespace Backend {
                public static class Constants {
                    public const int NUMBER = 123;
                    public const String STRING = "hello world";
                    public static readonly byte[] ARRAY = new byte[] { 0, 1, 2, 3 };
                    public static readonly Record STRUCT_VALUE = new Record { id = 0, secretCode = "xyz" };
                    public static readonly Record STRUCT_REF = new Record { id = 1, secretCode = "xyz" };
                    public const String EMPTY_STR = "";
                    public const byte CUSTOM = 45;
                }
            }
        """)
        assert outputs["Constants.cs"] == expected

    def test_private_constants_are_skipped(self):
        outputs = compile_rust("""
            const HIDDEN: i32 = 1;
            pub(crate) const INTERNAL: i32 = 2;
            pub const SHOWN: i32 = 3;
        """)

        constants = outputs["Constants.cs"]
        assert "SHOWN = 3;" in constants
        assert "HIDDEN" not in constants
        assert "INTERNAL" not in constants

    def test_literal_translation(self):
        outputs = compile_rust("""
            pub const MASK: u32 = 0xFF_FFu32;
            pub const PERMS: u32 = 0o755;
            pub const RATIO: f32 = 0.5;
            pub const SCALE: f64 = 2.5e3;
            pub const REPEATED: [u8; 3] = [7; 3];
            pub const DEFAULT_MODE: Mode = Mode::ReadOnly;
            pub const FLAGS: u32 = (1 << 2) | 1;

            #[repr(C)]
            pub enum Mode {
                ReadOnly,
            }
        """)

        constants = outputs["Constants.cs"]
        assert "public const uint MASK = 0xFFFF;" in constants
        assert "public const uint PERMS = 493;" in constants
        assert "public const float RATIO = 0.5f;" in constants
        assert "public const double SCALE = 2.5e3;" in constants
        assert "public static readonly byte[] REPEATED = new byte[] { 7, 7, 7 };" in constants
        assert "public const Mode DEFAULT_MODE = Mode.ReadOnly;" in constants
        assert "public const uint FLAGS = (1 << 2) | 1;" in constants

    def test_nested_struct_literal_uses_declared_field_types(self):
        outputs = compile_rust("""
            #[repr(C)]
            pub struct Limits {
                pub sizes: [u16; 2],
                pub name: *const c_char,
            }

            pub const LIMITS: Limits = Limits {
                sizes: [1, 2],
                name: 0 as *const c_char,
            };
        """)

        constants = outputs["Constants.cs"]
        assert ('public static readonly Limits LIMITS = '
                'new Limits { sizes = new ushort[] { 1, 2 }, name = "" };') in constants

    def test_computed_constant_is_an_error(self):
        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                pub const SIZE: usize = std::mem::size_of::<u64>();
            """)

        error = exc_info.value.errors[0]
        assert isinstance(error, UnsupportedTypeError)
        assert error.declaration == "SIZE"


class TestErrors:
    """Error collection across a whole compilation"""

    def test_errors_are_collected_per_declaration(self):
        """Every failing declaration is reported; the others are still generated"""
        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                #[repr(C)]
                pub enum Shape {
                    Circle(f32),
                }

                #[no_mangle]
                pub extern "C" fn bad_callback(cb: extern "C" fn(code: i32)) {}

                #[no_mangle]
                pub extern "C" fn good(x: i32) -> i32 { x }
            """)

        error = exc_info.value
        assert [e.declaration for e in error.errors] == ["Shape", "bad_callback"]
        assert isinstance(error.errors[1], UnsupportedCallbackShapeError)
        assert error.errors[0].location.line == 2
        assert "2 errors" in str(error)

        # Successful declarations still produce output
        assert "public int Good(int x) {" in error.outputs["Backend.cs"]
        assert "Shape" not in error.outputs["Types.cs"]

    def test_error_message_names_location_and_declaration(self):
        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                #[no_mangle]
                pub extern "C" fn pairs(a_ptr: *const u8, a_len: usize, b_ptr: *const u8, b_len: usize) {}
            """)

        message = str(exc_info.value.errors[0])
        assert message.startswith("lib.rs:2:")
        assert message.endswith("[in pairs]")

    def test_error_message_names_field(self):
        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                #[repr(C)]
                pub struct Bad {
                    good: u8,
                    name: &str,
                }
            """)

        (error,) = exc_info.value.errors
        assert isinstance(error, UnsupportedTypeError)
        assert error.member == "field 'name'"
        assert str(error).endswith("(in field 'name') [in Bad]")

    def test_error_message_names_parameter(self):
        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                #[no_mangle]
                pub extern "C" fn fun(count: u32, items: Vec<u8>) {}
            """)

        (error,) = exc_info.value.errors
        assert "Vec<u8>" in str(error)
        assert "(in parameter 'items')" in str(error)

    def test_strict_mode_rejects_unknown_types(self):
        config = BindingConfig(strict=True)

        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                #[no_mangle]
                pub extern "C" fn fun(widget: *mut Widget) {}
            """, config)

        assert isinstance(exc_info.value.errors[0], UnresolvedTypeError)
        assert "Widget" in str(exc_info.value.errors[0])

    def test_cyclic_aliases_are_rejected(self):
        with pytest.raises(CompilationError) as exc_info:
            compile_rust("""
                pub type A = B;
                pub type B = A;

                #[no_mangle]
                pub extern "C" fn fun(value: A) {}
            """)

        assert any("cyclic type alias" in str(e) for e in exc_info.value.errors)

    def test_invalid_custom_constant(self):
        config = BindingConfig()
        config.add_const("int", "not valid", 1)

        with pytest.raises(CompilationError) as exc_info:
            compile_rust("pub const X: i32 = 1;", config)

        assert exc_info.value.errors[0].declaration == "not valid"
        assert "public const int X = 1;" in exc_info.value.outputs["Constants.cs"]


class TestConfiguration:
    """Configuration affecting the generated documents"""

    def test_custom_names_and_visibility(self):
        config = BindingConfig(
            namespace="MyApp.Native",
            library_name="core",
            class_name="CoreApi",
            constants_class="CoreConstants",
            types_file="CoreTypes.cs",
            visibility="internal",
            using_statements=["MyApp.Utilities"],
        )

        outputs = compile_rust("""
            pub const LIMIT: i32 = 4;

            #[repr(C)]
            pub struct Pair {
                a: i32,
            }

            #[no_mangle]
            pub extern "C" fn run(user_data: *mut c_void,
                                  cb: extern "C" fn(user_data: *mut c_void, result: *const FfiResult)) {}
        """, config)

        assert set(outputs) == {"CoreTypes.cs", "CoreConstants.cs", "CoreApi.cs", "ICoreApi.cs"}
        assert "using MyApp.Utilities;\n\nnamespace MyApp.Native {\n" in outputs["CoreTypes.cs"]
        assert "    internal struct Pair {" in outputs["CoreTypes.cs"]
        assert "    internal static class CoreConstants {" in outputs["CoreConstants.cs"]
        assert "    internal partial class CoreApi : ICoreApi {" in outputs["CoreApi.cs"]
        assert 'internal const String DLL_NAME = "core";' in outputs["CoreApi.cs"]
        assert "    internal partial interface ICoreApi {" in outputs["ICoreApi.cs"]

    def test_all_documents_present_when_empty(self):
        outputs = CSharpBindingsGenerator().compile([])

        assert outputs == {"Types.cs": "", "Constants.cs": "", "Backend.cs": "", "IBackend.cs": ""}

    def test_duplicate_declarations_emitted_once(self):
        outputs = compile_rust("""
            mod a {
                #[repr(C)]
                pub struct Point { x: i32 }
            }

            mod b {
                #[repr(C)]
                pub struct Point { x: i32 }
            }
        """)

        assert outputs["Types.cs"].count("public struct Point {") == 1

    def test_repeated_compilations_are_isolated(self):
        generator = CSharpBindingsGenerator()
        first = generator.compile_source("#[repr(C)] pub struct A { x: i32 }")
        second = generator.compile_source("#[repr(C)] pub struct B { x: i32 }")

        assert "struct A" in first["Types.cs"]
        assert "struct A" not in second["Types.cs"]


class TestCrateLoading:
    """Module tree loading and output writing"""

    def test_generate_from_cargo_manifest(self, ffi_crate, tmp_path, capsys):
        output_dir = tmp_path / "out"
        generator = CSharpBindingsGenerator()

        outputs = generator.generate(output_dir, crate_dir=ffi_crate)

        assert "public struct Point {" in outputs["Types.cs"]
        assert "public void MovePoint(ref Point point, int dx) {" in outputs["Backend.cs"]
        assert "public const uint MAX_USERS = 16;" in outputs["Constants.cs"]

        # Empty documents are not written
        written = sorted(p.name for p in output_dir.iterdir())
        assert written == ["Backend.cs", "Constants.cs", "Types.cs"]
        assert (output_dir / "Types.cs").read_text() == outputs["Types.cs"]

        captured = capsys.readouterr()
        assert "Processing:" in captured.out
        assert "(crate::app)" in captured.out
        assert "Generated bindings:" in captured.out

    def test_declarations_record_their_module(self, ffi_crate):
        declarations = CSharpBindingsGenerator().collect_declarations(ffi_crate / "src" / "lib.rs")

        modules = {decl.name: decl.module for decl in declarations}
        assert modules["Point"] == ("types",)
        assert modules["move_point"] == ("app",)
        assert modules["MAX_USERS"] == ()

    def test_missing_module_file(self, tmp_path):
        from rust_cs_bindgen.errors import SourceError

        lib = tmp_path / "lib.rs"
        lib.write_text("mod missing;\n")

        with pytest.raises(SourceError, match="missing"):
            CSharpBindingsGenerator().compile_path(lib)

    def test_missing_module_file_ignored(self, tmp_path, capsys):
        lib = tmp_path / "lib.rs"
        lib.write_text("mod missing;\npub const A: i32 = 1;\n")

        outputs = CSharpBindingsGenerator().compile_path(lib, ignore_missing=True)

        assert "public const int A = 1;" in outputs["Constants.cs"]
        assert "Warning: File not found for module 'missing'" in capsys.readouterr().err

    def test_nested_module_files(self, tmp_path):
        """Child modules of a non-root file live in a directory named after it"""
        (tmp_path / "outer").mkdir()
        (tmp_path / "lib.rs").write_text("mod outer;\n")
        (tmp_path / "outer.rs").write_text("pub mod inner;\n")
        (tmp_path / "outer" / "inner.rs").write_text("pub const DEEP: u8 = 1;\n")

        declarations = CSharpBindingsGenerator().collect_declarations(tmp_path / "lib.rs")

        assert [(d.name, d.module) for d in declarations] == [("DEEP", ("outer", "inner"))]

    def test_explicit_source_overrides_config(self, ffi_crate, tmp_path):
        other = tmp_path / "other.rs"
        other.write_text("pub const ONLY: i32 = 1;\n")
        generator = CSharpBindingsGenerator(BindingConfig(source_file="src/lib.rs"))

        outputs = generator.generate(tmp_path / "out", source=other, crate_dir=ffi_crate)

        assert "ONLY" in outputs["Constants.cs"]
        assert outputs["Types.cs"] == ""
