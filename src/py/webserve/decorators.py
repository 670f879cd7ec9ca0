from typing import ClassVar, Union, Callable, TypeVar, Any, cast

T = TypeVar("T")


class Webserve:
	"""Defines the attributes used by decorators to annotate handlers"""

	ON: ClassVar[str] = "_webserve_on"
	ON_PRIORITY: ClassVar[str] = "_webserve_on_priority"
	# Values that can't have attributes set are annotated by object id.
	Annotations: ClassVar[dict[int, dict[str, Any]]] = {}

	@staticmethod
	def Meta(scope: Any) -> dict[str, Any]:
		"""Returns the dictionary of meta attributes for the given value."""
		if isinstance(scope, type):
			if not hasattr(scope, "__webserve__"):
				setattr(scope, "__webserve__", {})
			return cast(dict[str, Any], getattr(scope, "__webserve__"))
		elif hasattr(scope, "__dict__"):
			return cast(dict[str, Any], scope.__dict__)
		else:
			return Webserve.Annotations.setdefault(id(scope), {})


def on(
	priority: int = 0, **methods: Union[str, list[str], tuple[str, ...]]
) -> Callable[[T], T]:
	"""The @on decorator marks a service method as the handler of the HTTP
	requests matching the given methods and route templates. Methods are
	given as keyword arguments, joined with `_` to register more than one at
	once, and `ANY` registers a fallback used for every method:

	>    @on(GET_HEAD="/files/{path:any}")
	>    def read(self, request, path):
	>        return request.respond(...)

	The decorated method takes the request and the parameters extracted from
	the route, and returns a response. When more than one route matches, the
	one with the highest priority wins."""

	def decorator(function: T) -> T:
		meta = Webserve.Meta(function)
		v = meta.setdefault(Webserve.ON, [])
		meta.setdefault(Webserve.ON_PRIORITY, priority)
		for http_methods, url in list(methods.items()):
			urls = (url,) if isinstance(url, str) else url
			for http_method in http_methods.upper().split("_"):
				for _ in urls:
					v.append((http_method, _))
		return function

	return decorator


# EOF
