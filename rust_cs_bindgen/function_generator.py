"""
Code generation for exported functions: DllImport declarations, wrappers and callbacks
"""

from dataclasses import dataclass, field

from .constants import DEFAULT_UTILS_CLASS
from .declarations import CallbackFn, Function, Param, is_void_pointer
from .errors import BindgenError, UnsupportedCallbackShapeError, UnsupportedTypeError
from .naming import CallbackShape, callback_shape, find_array_pairs, param_name, to_upper_camel
from .type_mapper import ELEMENT, PARAM, RETURN, TypeMapper


@dataclass
class FunctionBindings:
    """Generated pieces for one function"""
    code: str
    interface: str | None = None
    # (delegate name, delegate declaration, trampoline or None)
    callbacks: list[tuple[str, str, str | None]] = field(default_factory=list)


class FunctionGenerator:
    """Generates the C# side of one ``#[no_mangle] extern "C"`` function"""

    def __init__(self, type_mapper: TypeMapper, utils_class: str = DEFAULT_UTILS_CLASS):
        self.type_mapper = type_mapper
        self.utils_class = utils_class

    def generate_function(self, decl: Function) -> FunctionBindings:
        mapper = self.type_mapper
        params = [Param(p.name, mapper.env.resolve(p.ty)) for p in decl.params]
        method_name = to_upper_camel(decl.name)
        native_name = f"{method_name}Native"
        result_type = mapper.map_type(decl.ret, RETURN)

        leading, user_data, callbacks = self._split_callbacks(params)

        native_params, wrapper_params, call_args = self._map_params(leading)

        shapes = [self._callback_shape(p) for p in callbacks]
        if user_data is not None:
            native_params.append(f"IntPtr {param_name(user_data.name or 'user_data')}")
            for index, (param, shape) in enumerate(zip(callbacks, shapes)):
                native_params.append(f"{shape.delegate_name} {param_name(param.name or f'cb{index}')}")

        native = (f'        [DllImport(DLL_NAME, EntryPoint = "{decl.name}")]\n'
                  f"        internal static extern {result_type.name} {native_name}({', '.join(native_params)});\n\n")

        if not shapes:
            call = f"{native_name}({', '.join(call_args)})"
            statement = f"{call};" if result_type.name == "void" else f"return {call};"
            wrapper = (f"        public {result_type.name} {method_name}({', '.join(wrapper_params)}) {{\n"
                       f"            {statement}\n"
                       f"        }}\n\n")
            return FunctionBindings(wrapper + native)

        if len(shapes) > 1:
            return FunctionBindings(native, callbacks=[
                (shape.delegate_name, self._delegate(shape), None) for shape in shapes
            ])

        shape = shapes[0]
        result = shape.result_type
        prepare = f"{self.utils_class}.PrepareTask<{result}>()" if result else f"{self.utils_class}.PrepareTask()"
        call_args = call_args + ["userData", shape.trampoline_name]
        wrapper = (f"        public {shape.task_type} {method_name}({', '.join(wrapper_params)}) {{\n"
                   f"            var (task, userData) = {prepare};\n"
                   f"            {native_name}({', '.join(call_args)});\n"
                   f"            return task;\n"
                   f"        }}\n\n")
        interface = f"        {shape.task_type} {method_name}({', '.join(wrapper_params)});\n"
        return FunctionBindings(
            wrapper + native,
            interface=interface,
            callbacks=[(shape.delegate_name, self._delegate(shape), self._trampoline(shape))],
        )

    def _callback_shape(self, param: Param) -> CallbackShape:
        try:
            return callback_shape(param.ty, self.type_mapper, self.utils_class)
        except BindgenError as e:
            raise e.within(f"parameter '{param.name}'")

    @staticmethod
    def _split_callbacks(params: list[Param]):
        """Split off the trailing user-data pointer and callback parameters"""
        first = next((i for i, p in enumerate(params) if isinstance(p.ty, CallbackFn)), None)
        if first is None:
            return params, None, []

        callbacks = params[first:]
        if any(not isinstance(p.ty, CallbackFn) for p in callbacks):
            raise UnsupportedCallbackShapeError("callback parameters must come last")
        if first == 0 or not is_void_pointer(params[first - 1].ty):
            raise UnsupportedCallbackShapeError(
                "callbacks must be preceded by a '*mut c_void' user-data parameter")
        return params[:first - 1], params[first - 1], callbacks

    def _map_params(self, params: list[Param]):
        mapper = self.type_mapper
        pairs = find_array_pairs(params)
        if len(pairs) > 1:
            raise UnsupportedTypeError("more than one pointer/length pair in one function")
        pair_index = pairs[0].index if pairs else None

        native_params, wrapper_params, call_args = [], [], []
        out_params = 0
        index = 0
        while index < len(params):
            param = params[index]

            if index == pair_index:
                array_name = param_name(pairs[0].base)
                length_param = params[index + 1]
                try:
                    element = mapper.map_type(param.ty.to, ELEMENT)
                    length = mapper.map_type(length_param.ty, PARAM)
                except BindgenError as e:
                    raise e.within(f"parameter '{param.name}'")
                size_index = len(native_params) + 1
                native_params.append(
                    f"[MarshalAs(UnmanagedType.LPArray, SizeParamIndex = {size_index})] "
                    f"{element.name}[] {array_name}")
                native_params.append(length.declare(param_name(length_param.name)))
                wrapper_params.append(f"{element.name}[] {array_name}")
                call_args.append(array_name)
                call_args.append(f"({length.name}) {array_name}.Length")
                index += 2
                continue

            name = param_name(param.name) if param.name and param.name != "_" else f"arg{index}"
            try:
                mapped = mapper.map_type(param.ty, PARAM)
            except BindgenError as e:
                raise e.within(f"parameter '{param.name}'")
            if mapped.modifier == "out":
                out_params += 1
            native_params.append(mapped.declare(name))
            wrapper_params.append(mapped.declare(name, marshal=False))
            call_args.append(mapped.argument(name))
            index += 1

        if out_params > 1:
            raise UnsupportedTypeError("more than one out parameter in one function")
        return native_params, wrapper_params, call_args

    @staticmethod
    def _delegate(shape: CallbackShape) -> str:
        return f"        internal delegate {shape.ret} {shape.delegate_name}({', '.join(shape.params)});\n\n"

    def _trampoline(self, shape: CallbackShape) -> str:
        if shape.ret != "void":
            raise UnsupportedCallbackShapeError(
                f"callback '{shape.delegate_name}' completes a task and must not return a value")
        return (f"        #if __IOS__\n"
                f"        [MonoPInvokeCallback(typeof({shape.delegate_name}))]\n"
                f"        #endif\n"
                f"        private static void {shape.trampoline_name}({', '.join(shape.params)}) {{\n"
                f"            {self.utils_class}.CompleteTask({', '.join(shape.complete_arguments())});\n"
                f"        }}\n\n")
